"""Console display of revision trees."""

from revstore.display.tree_renderer import TreeRenderer

__all__ = ["TreeRenderer"]

"""Encodings of values, revisions and revision trees (JSON and YAML)."""

from revstore.codec.json_codec import (
    CodecError,
    dumps_tree,
    loads_tree,
    revision_from_dict,
    revision_to_dict,
    tree_from_dict,
    tree_to_dict,
)
from revstore.codec.yaml_codec import dump_metadata, dump_value, load_metadata, load_value

__all__ = [
    "CodecError",
    "dump_metadata",
    "dump_value",
    "dumps_tree",
    "load_metadata",
    "load_value",
    "loads_tree",
    "revision_from_dict",
    "revision_to_dict",
    "tree_from_dict",
    "tree_to_dict",
]

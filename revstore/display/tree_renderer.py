"""Rich terminal renderer for revision trees.

The DAG is drawn from its heads down to its tails, children before
parents.  A revision reachable from several children is expanded once;
later occurrences are dimmed back-references.

Style scheme
------------
- bold green : head revision
- red        : tombstone (deleted)
- yellow     : parent absent from the tree
- dim        : already drawn above
"""

from __future__ import annotations

from collections.abc import Callable

from rich.console import Console
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from revstore.core.revision_tree import RevisionTree
from revstore.models.keys import Hash
from revstore.models.revision import Revision

SHORT_HASH = 8


def short(value: Hash) -> str:
    return value.hex()[:SHORT_HASH]


def describe(revision: Revision) -> str:
    """Default one-line summary of a revision's metadata."""
    if revision.deleted:
        return "deleted"
    if not revision.metadata:
        return ""
    return ", ".join(
        f"{key}={value.to_python()!r}" for key, value in sorted(revision.metadata.items())
    )


class TreeRenderer:
    """Renders a ``RevisionTree`` as Rich renderables.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    formatter:
        Revision summary shown next to each hash.  Defaults to
        :func:`describe`.
    """

    def __init__(
        self,
        console: Console | None = None,
        formatter: Callable[[Revision], str] | None = None,
    ) -> None:
        self.console = console or Console()
        self._formatter = formatter or describe

    def render_tree(self, tree: RevisionTree) -> Tree:
        title = (
            f"[bold]{tree.content.hex()}[/bold] ({tree.length} bytes, "
            f"{len(tree)} revisions, {tree.merge_status()})"
            if len(tree)
            else "[dim]empty tree[/dim]"
        )
        root = Tree(title)
        heads = set(tree.head)
        seen: set[Hash] = set()
        # Iterative DFS; each stack entry is (rich parent node, revision hash).
        stack = [(root, h) for h in reversed(tree.head)]
        while stack:
            parent_node, rev_hash = stack.pop()
            if rev_hash not in tree:
                parent_node.add(Text(f"{short(rev_hash)} (unknown)", style="yellow"))
                continue
            if rev_hash in seen:
                parent_node.add(Text(f"{short(rev_hash)} ^", style="dim"))
                continue
            seen.add(rev_hash)
            revision = tree.get(rev_hash)
            node = parent_node.add(self._label(revision, rev_hash in heads))
            stack.extend((node, p) for p in reversed(revision.parents))
        return root

    def _label(self, revision: Revision, is_head: bool) -> Text:
        style = "red" if revision.deleted else ("bold green" if is_head else "")
        label = Text(short(revision.revision), style=style)
        summary = self._formatter(revision)
        if summary:
            label.append(f"  {summary}", style="red" if revision.deleted else "")
        return label

    def render_heads(self, tree: RevisionTree) -> Table:
        """Table of head revisions with their metadata."""
        table = Table(title=f"Head of {short(tree.content)}")
        table.add_column("Revision", style="cyan")
        table.add_column("Parents")
        table.add_column("Deleted", justify="center")
        table.add_column("Metadata")
        for revision in tree.get_all(tree.head):
            table.add_row(
                short(revision.revision),
                ", ".join(short(p) for p in revision.parents) or "-",
                "[red]yes[/red]" if revision.deleted else "no",
                Text(describe(revision)) if not revision.deleted else "",
            )
        return table

    def print_tree(self, tree: RevisionTree) -> None:
        self.console.print(self.render_tree(tree))

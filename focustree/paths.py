"""Path addressing for subtask trees.

A path is a tuple of child indices: path[0] indexes the task's top-level
subtasks, path[1] that node's children, and so on. Paths are transient
coordinates: compute them fresh from the current tree, never store them
across mutations.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Callable, Iterator, Sequence

from focustree.models import Subtask

SubtaskPath = tuple[int, ...]


def parse_path(text: str | Sequence[int]) -> SubtaskPath:
    """Parse '0-1-2' (or a sequence of ints) into a path tuple.

    Raises ValueError for malformed input.
    """
    if isinstance(text, str):
        parts = [p.strip() for p in text.split("-")]
        if not text.strip() or any(not p.isdigit() for p in parts):
            raise ValueError(f"Invalid subtask path: {text!r}")
        return tuple(int(p) for p in parts)
    path = tuple(text)
    if not path or any(isinstance(i, bool) or not isinstance(i, int) or i < 0 for i in path):
        raise ValueError(f"Invalid subtask path: {list(path)!r}")
    return path


def format_path(path: Sequence[int]) -> str:
    return "-".join(str(i) for i in path)


def resolve(subtasks: Sequence[Subtask], path: Sequence[int]) -> Subtask | None:
    """Walk the tree along *path*. Returns None if any index is out of range."""
    if not path:
        return None
    level: Sequence[Subtask] = subtasks
    node: Subtask | None = None
    for idx in path:
        if idx < 0 or idx >= len(level):
            return None
        node = level[idx]
        level = node.children
    return node


def update_node(
    subtasks: Sequence[Subtask],
    path: Sequence[int],
    fn: Callable[[Subtask], Subtask],
) -> tuple[Subtask, ...]:
    """Return a new tree with fn applied to the node at *path*.

    Only the nodes along the path are copied; siblings are shared.
    An unresolvable path returns the tree unchanged.
    """
    tree = tuple(subtasks)
    if resolve(tree, path) is None:
        return tree
    idx, rest = path[0], path[1:]
    node = tree[idx]
    if rest:
        node = replace(node, children=update_node(node.children, rest, fn))
    else:
        node = fn(node)
    return tree[:idx] + (node,) + tree[idx + 1:]


def set_completed(
    subtasks: Sequence[Subtask], path: Sequence[int], value: bool
) -> tuple[Subtask, ...]:
    """Copy-on-write: replace only the completion flag of the node at *path*."""
    return update_node(subtasks, path, lambda node: replace(node, completed=value))


def flatten_leaves(subtasks: Sequence[Subtask]) -> list[Subtask]:
    """Depth-first, left-to-right list of leaf nodes only."""
    return [node for _path, node in leaf_paths(subtasks)]


def leaf_paths(subtasks: Sequence[Subtask]) -> list[tuple[SubtaskPath, Subtask]]:
    """Leaves with their paths, in flatten_leaves order."""
    return [(p, node) for p, node in iter_paths(subtasks) if node.is_leaf]


def iter_paths(
    subtasks: Sequence[Subtask], prefix: SubtaskPath = ()
) -> Iterator[tuple[SubtaskPath, Subtask]]:
    """Yield every node with its path, pre-order."""
    for i, node in enumerate(subtasks):
        path = prefix + (i,)
        yield path, node
        if node.children:
            yield from iter_paths(node.children, path)


def find_path(subtasks: Sequence[Subtask], subtask_id: str) -> SubtaskPath | None:
    """Locate a node by id in the current tree."""
    if not subtask_id:
        return None
    for path, node in iter_paths(subtasks):
        if node.id == subtask_id:
            return path
    return None


def find_path_by_title(subtasks: Sequence[Subtask], title: str) -> SubtaskPath | None:
    """First node (pre-order) whose title matches exactly."""
    for path, node in iter_paths(subtasks):
        if node.title == title:
            return path
    return None


def ancestors(path: Sequence[int]) -> list[SubtaskPath]:
    """Strict ancestors of *path*, nearest parent first."""
    p = tuple(path)
    return [p[:depth] for depth in range(len(p) - 1, 0, -1)]

"""Completion propagation over subtask trees.

All functions are pure: they take an immutable tree (or Task) and return a
new one. Persisting the result is the caller's job (see tasks.toggle_subtask).

Rules applied by toggle(), in order:
    1. resolve the target; a stale path is a no-op
    2. flip its flag
    3. completing: every descendant becomes complete
    4. uncompleting: every strict ancestor becomes incomplete
    5. completing: walk ancestors bottom-up, completing each one whose
       children are all fully complete
    6. task.completed = are_all_subtasks_complete(subtasks)
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Sequence

from focustree.models import Subtask, Task
from focustree.paths import (
    ancestors,
    flatten_leaves,
    resolve,
    set_completed,
    update_node,
)

logger = logging.getLogger(__name__)


def is_fully_complete(node: Subtask) -> bool:
    """A node is fully complete iff it is flagged and so is its whole subtree."""
    if not node.completed:
        return False
    return all(is_fully_complete(c) for c in node.children)


def are_all_subtasks_complete(subtasks: Sequence[Subtask]) -> bool:
    """False for an empty list: a task without subtasks never auto-completes."""
    if not subtasks:
        return False
    return all(is_fully_complete(s) for s in subtasks)


def _complete_subtree(node: Subtask) -> Subtask:
    return replace(
        node,
        completed=True,
        children=tuple(_complete_subtree(c) for c in node.children),
    )


def _reset_subtree(node: Subtask) -> Subtask:
    return replace(
        node,
        completed=False,
        children=tuple(_reset_subtree(c) for c in node.children),
    )


def complete_descendants(
    subtasks: Sequence[Subtask], path: Sequence[int]
) -> tuple[Subtask, ...]:
    return update_node(subtasks, path, _complete_subtree)


def invalidate_ancestors(
    subtasks: Sequence[Subtask], path: Sequence[int]
) -> tuple[Subtask, ...]:
    tree = tuple(subtasks)
    for parent in ancestors(path):
        tree = set_completed(tree, parent, False)
    return tree


def promote_ancestors(
    subtasks: Sequence[Subtask], path: Sequence[int]
) -> tuple[Subtask, ...]:
    """Bottom-up: complete each ancestor whose children are all fully complete.

    A grandparent is checked only after its parent may have just been
    completed, so a single leaf can complete a whole chain.
    """
    tree = tuple(subtasks)
    for parent in ancestors(path):
        node = resolve(tree, parent)
        if node is None:
            continue
        if all(is_fully_complete(c) for c in node.children):
            tree = set_completed(tree, parent, True)
    return tree


def apply_completion(
    subtasks: Sequence[Subtask], path: Sequence[int], value: bool
) -> tuple[Subtask, ...]:
    """Set the node at *path* to *value* and propagate through the tree."""
    tree = tuple(subtasks)
    if resolve(tree, path) is None:
        return tree
    tree = set_completed(tree, path, value)
    if value:
        tree = complete_descendants(tree, path)
        tree = promote_ancestors(tree, path)
    else:
        tree = invalidate_ancestors(tree, path)
    return tree


def toggle(task: Task, path: Sequence[int]) -> Task:
    """Toggle the subtask at *path* and return the updated task.

    Returns *task* itself (unchanged) if the path does not resolve.
    """
    path = tuple(path)
    target = resolve(task.subtasks, path)
    if target is None:
        logger.debug("stale subtask path %s on task %s; ignoring", path, task.id)
        return task
    tree = apply_completion(task.subtasks, path, not target.completed)
    return replace(task, subtasks=tree, completed=are_all_subtasks_complete(tree))


def complete_task(task: Task) -> Task:
    """Drive every top-level subtask to complete, then derive task completion.

    A task with no subtasks has its flag set directly.
    """
    if not task.subtasks:
        return replace(task, completed=True)
    tree = tuple(task.subtasks)
    for i, node in enumerate(tree):
        if not is_fully_complete(node):
            tree = apply_completion(tree, (i,), True)
    return replace(task, subtasks=tree, completed=are_all_subtasks_complete(tree))


def toggle_task_completed(task: Task) -> Task:
    """Flip task-level completion.

    Without subtasks the flag is user-controlled. With subtasks the tree is
    driven instead (completed everywhere, or reset everywhere) so that
    task.completed still matches the derivation.
    """
    if not task.subtasks:
        return replace(task, completed=not task.completed)
    if task.completed:
        tree = tuple(_reset_subtree(s) for s in task.subtasks)
        return replace(task, subtasks=tree, completed=False)
    return complete_task(task)


def completion_ratio(subtasks: Sequence[Subtask]) -> float:
    """Fraction of leaves that are complete (0.0 for an empty tree)."""
    leaves = flatten_leaves(subtasks)
    if not leaves:
        return 0.0
    return sum(1 for leaf in leaves if leaf.completed) / len(leaves)

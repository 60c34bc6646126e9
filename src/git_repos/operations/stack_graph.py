"""Pure functions over a repository's stack edges.

The edges of one repository form a forest: every branch is the child of at
most one edge. None of these functions mutate their input, so callers can
compare the before and after values to decide whether a save is needed.
"""

from git_repos.errors import AlreadyStackedError
from git_repos.operations.config import StackEntry

Stacks = tuple[StackEntry, ...]


def parent_of(stacks: Stacks, branch: str) -> str | None:
    for entry in stacks:
        if entry.child == branch:
            return entry.parent
    return None


def children_of(stacks: Stacks, branch: str) -> list[str]:
    return [entry.child for entry in stacks if entry.parent == branch]


def add_entry(stacks: Stacks, parent: str, child: str) -> Stacks:
    """Record ``child`` as stacked on ``parent``."""
    existing = parent_of(stacks, child)
    if existing is not None:
        raise AlreadyStackedError(
            f'Branch "{child}" is already stacked on "{existing}"'
        )
    if parent == child:
        raise AlreadyStackedError(f'Branch "{child}" cannot be stacked on itself')
    return stacks + (StackEntry(parent=parent, child=child),)


def remove_by_child(stacks: Stacks, child: str) -> Stacks:
    """Drop the edge giving ``child`` its parent, if any."""
    if parent_of(stacks, child) is None:
        return stacks
    return tuple(entry for entry in stacks if entry.child != child)


def remove_all_by_parent(stacks: Stacks, parent: str) -> Stacks:
    """Drop every edge from ``parent``; its children become independent."""
    if not children_of(stacks, parent):
        return stacks
    return tuple(entry for entry in stacks if entry.parent != parent)


def descendants_of(stacks: Stacks, branch: str) -> list[str]:
    """All branches below ``branch``, depth first."""
    result = []
    pending = list(reversed(children_of(stacks, branch)))
    while pending:
        current = pending.pop()
        if current in result or current == branch:
            continue
        result.append(current)
        pending.extend(reversed(children_of(stacks, current)))
    return result

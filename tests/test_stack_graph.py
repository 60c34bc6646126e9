import pytest
from pytest_check import check

from git_repos.errors import AlreadyStackedError
from git_repos.operations.config import StackEntry
from git_repos.operations.stack_graph import (
    add_entry,
    children_of,
    descendants_of,
    parent_of,
    remove_all_by_parent,
    remove_by_child,
)

STACKS = (
    StackEntry("main-feature", "a"),
    StackEntry("a", "b"),
    StackEntry("a", "c"),
    StackEntry("b", "d"),
)


def test_parent_of():
    with check:
        assert parent_of(STACKS, "b") == "a"
    with check:
        assert parent_of(STACKS, "main-feature") is None
    with check:
        assert parent_of((), "anything") is None


def test_children_of_keeps_insertion_order():
    assert children_of(STACKS, "a") == ["b", "c"]
    assert children_of(STACKS, "d") == []


def test_add_entry_appends():
    stacks = add_entry((), "x", "y")
    assert stacks == (StackEntry("x", "y"),)


def test_add_entry_rejects_second_parent():
    """Each branch is the child of at most one edge."""
    with pytest.raises(AlreadyStackedError):
        add_entry(STACKS, "c", "b")


def test_add_entry_rejects_self_parent():
    with pytest.raises(AlreadyStackedError):
        add_entry((), "a", "a")


def test_remove_by_child():
    stacks = remove_by_child(STACKS, "b")
    with check:
        assert parent_of(stacks, "b") is None
    with check:
        assert parent_of(stacks, "d") == "b"
    with check:
        assert len(stacks) == 3


def test_remove_missing_entry_is_identity():
    assert remove_by_child(STACKS, "zzz") is STACKS
    assert remove_all_by_parent(STACKS, "zzz") is STACKS


def test_remove_all_by_parent():
    stacks = remove_all_by_parent(STACKS, "a")
    assert children_of(stacks, "a") == []
    assert parent_of(stacks, "a") == "main-feature"
    assert parent_of(stacks, "d") == "b"


def test_descendants_depth_first():
    assert descendants_of(STACKS, "a") == ["b", "d", "c"]
    assert descendants_of(STACKS, "d") == []


def test_inputs_are_not_mutated():
    before = tuple(STACKS)
    add_entry(STACKS, "d", "e")
    remove_by_child(STACKS, "a")
    remove_all_by_parent(STACKS, "a")
    assert STACKS == before

"""Unit tests for list-name role classification."""

from __future__ import annotations

import pytest

from reminders.list_roles import (
    ListRole,
    is_finished,
    is_in_progress,
    is_unplanned_or_finished,
    list_role,
)


@pytest.mark.parametrize(
    ("name", "role"),
    [
        ("Done", ListRole.DONE),
        ("Completed", ListRole.DONE),
        ("Archive 2024", ListRole.ARCHIVE),
        ("Product Backlog", ListRole.BACKLOG),
        ("In Progress", ListRole.IN_PROGRESS),
        ("Doing", ListRole.IN_PROGRESS),
        ("Working on it", ListRole.IN_PROGRESS),
        ("Code Review", ListRole.IN_PROGRESS),
        ("To Do", ListRole.ACTIVE),
        ("Sprint", ListRole.ACTIVE),
    ],
)
def test_list_role(name: str, role: ListRole) -> None:
    assert list_role(name) is role


def test_list_role_is_case_insensitive() -> None:
    assert list_role("IN PROGRESS") is ListRole.IN_PROGRESS
    assert list_role("dOnE") is ListRole.DONE


def test_in_progress_keywords_match_regardless_of_role() -> None:
    """A finished list that names a review step still counts as in progress."""
    assert list_role("Review / Done") is ListRole.DONE
    assert is_in_progress("Review / Done")
    assert is_in_progress("Doing (backlog overflow)")


def test_role_predicates() -> None:
    assert is_finished("Done")
    assert not is_finished("Backlog")
    assert is_unplanned_or_finished("Backlog")
    assert not is_unplanned_or_finished("To Do")
    assert is_in_progress("Code Review")
    assert not is_in_progress("To Do")

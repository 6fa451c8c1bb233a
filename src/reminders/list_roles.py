"""Classification of board lists by the role their name implies."""

from __future__ import annotations

from enum import Enum


class ListRole(str, Enum):
    """Role of a list in the board's workflow."""

    ACTIVE = "active"
    DONE = "done"
    ARCHIVE = "archive"
    BACKLOG = "backlog"
    IN_PROGRESS = "in_progress"


IN_PROGRESS_KEYWORDS = ("progress", "doing", "working", "review")

# Checked in order; the first matching role wins.
_ROLE_KEYWORDS: tuple[tuple[ListRole, tuple[str, ...]], ...] = (
    (ListRole.DONE, ("done", "complete")),
    (ListRole.ARCHIVE, ("archive",)),
    (ListRole.BACKLOG, ("backlog",)),
    (ListRole.IN_PROGRESS, IN_PROGRESS_KEYWORDS),
)

FINISHED_ROLES = frozenset({ListRole.DONE, ListRole.ARCHIVE})
UNPLANNED_ROLES = FINISHED_ROLES | {ListRole.BACKLOG}


def list_role(name: str) -> ListRole:
    """Return the role for a list name using case-insensitive substring matching."""
    lowered = name.lower()
    for role, keywords in _ROLE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return role
    return ListRole.ACTIVE


def is_finished(name: str) -> bool:
    """Return True for done or archive lists."""
    return list_role(name) in FINISHED_ROLES


def is_unplanned_or_finished(name: str) -> bool:
    """Return True for done, archive, or backlog lists."""
    return list_role(name) in UNPLANNED_ROLES


def is_in_progress(name: str) -> bool:
    """Return True when the name carries an in-progress keyword.

    Matched on its own, so "Review / Done" counts as in progress even though
    its role is DONE.
    """
    lowered = name.lower()
    return any(keyword in lowered for keyword in IN_PROGRESS_KEYWORDS)

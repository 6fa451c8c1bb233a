"""Issue detection, dedup ledger, and reminder scheduling for Kan workspaces."""

from reminders.domain import IssueType, TickSummary, UserLink, WorkspaceLink
from reminders.errors import (
    ClassifierError,
    DispatchError,
    LedgerError,
    ReminderError,
    TransientSourceError,
)

__all__ = [
    "ClassifierError",
    "DispatchError",
    "IssueType",
    "LedgerError",
    "ReminderError",
    "TickSummary",
    "TransientSourceError",
    "UserLink",
    "WorkspaceLink",
]

"""Error taxonomy for the reminder pipeline.

None of these errors is fatal to the process. Each one is caught at the
narrowest boundary that can contain it:

- ``TransientSourceError``: the workspace is skipped for this tick.
- ``ClassifierError``: the vagueness heuristic is used instead, uncached.
- ``LedgerError``: the affected send is suppressed (fail-closed).
- ``DispatchError``: the send is logged and not recorded, so it retries.
"""

from __future__ import annotations


class ReminderError(Exception):
    """Base class for reminder pipeline failures."""


class TransientSourceError(ReminderError):
    """Task board data could not be fetched."""


class ClassifierError(ReminderError):
    """The external vagueness classifier call failed."""


class LedgerError(ReminderError):
    """The reminder ledger store could not be read or written."""


class DispatchError(ReminderError):
    """A rendered reminder could not be delivered."""


__all__ = [
    "ClassifierError",
    "DispatchError",
    "LedgerError",
    "ReminderError",
    "TransientSourceError",
]

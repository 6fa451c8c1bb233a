"""Domain types shared by the reminder detectors, ledger, and scheduler."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Union


class IssueType(str, Enum):
    """Closed set of task and member problems the scheduler reminds about."""

    OVERDUE = "overdue"
    NO_DUE_DATE = "no_due_date"
    VAGUE = "vague"
    STALE = "stale"
    UNASSIGNED = "unassigned"
    NO_TASKS = "no_tasks"

    @property
    def cooldown_hours(self) -> int:
        """Minimum hours between two reminders for the same subject and chat."""
        return COOLDOWN_HOURS[self]

    @property
    def planning_window_only(self) -> bool:
        """Return True when this type only runs inside the planning window."""
        return self in PLANNING_WINDOW_TYPES


COOLDOWN_HOURS: dict[IssueType, int] = {
    IssueType.OVERDUE: 24,
    IssueType.NO_DUE_DATE: 24,
    IssueType.VAGUE: 24,
    IssueType.STALE: 48,
    IssueType.UNASSIGNED: 48,
    IssueType.NO_TASKS: 24,
}

PLANNING_WINDOW_TYPES = frozenset(
    {IssueType.NO_DUE_DATE, IssueType.VAGUE, IssueType.NO_TASKS}
)
ALWAYS_ON_TYPES = (IssueType.OVERDUE, IssueType.STALE, IssueType.UNASSIGNED)


@dataclass(frozen=True)
class WorkspaceLink:
    """Binding between a Telegram chat and a Kan workspace."""

    destination: int
    workspace_id: str
    display_name: str


@dataclass(frozen=True)
class UserLink:
    """Telegram identity linked to a Kan account email."""

    email: str
    telegram_user_id: int
    handle: str | None = None


@dataclass(frozen=True)
class Assignee:
    """Workspace member assigned to a card."""

    id: str
    email: str
    name: str | None = None


@dataclass(frozen=True)
class Card:
    """Task card as returned by the board data source."""

    id: str
    title: str
    description: str | None = None
    due_date: datetime | None = None
    updated_at: datetime | None = None
    created_at: datetime | None = None
    assignees: tuple[Assignee, ...] = ()


@dataclass(frozen=True)
class BoardList:
    """Named column on a board."""

    name: str
    cards: tuple[Card, ...] = ()


@dataclass(frozen=True)
class Board:
    """Board with its lists and cards."""

    id: str
    name: str
    slug: str
    lists: tuple[BoardList, ...] = ()


@dataclass(frozen=True)
class Member:
    """Workspace member."""

    id: str
    email: str
    status: str
    name: str | None = None


@dataclass(frozen=True)
class Workspace:
    """Workspace metadata needed for reminder rendering."""

    id: str
    slug: str
    name: str = ""
    members: tuple[Member, ...] = ()


@dataclass(frozen=True)
class CardRef:
    """Dedup subject for card-based issues."""

    card_id: str

    @property
    def storage_key(self) -> str:
        return self.card_id


@dataclass(frozen=True)
class MemberRef:
    """Dedup subject for member-based issues."""

    member_id: str

    @property
    def storage_key(self) -> str:
        return f"no_tasks:{self.member_id}"


DedupSubject = Union[CardRef, MemberRef]


@dataclass(frozen=True)
class CardSubject:
    """Issue subject pointing at a card in its board and list."""

    board: Board
    list_name: str
    card: Card

    @property
    def dedup(self) -> CardRef:
        return CardRef(self.card.id)

    @property
    def label(self) -> str:
        return self.card.title


@dataclass(frozen=True)
class MemberSubject:
    """Issue subject pointing at a workspace member."""

    member: Member

    @property
    def dedup(self) -> MemberRef:
        return MemberRef(self.member.id)

    @property
    def label(self) -> str:
        return f"no tasks for {self.member.email}"


IssueSubject = Union[CardSubject, MemberSubject]


@dataclass(frozen=True)
class IssueCandidate:
    """One detected issue instance awaiting the dedup decision."""

    issue_type: IssueType
    subject: IssueSubject
    days_in_list: int | None = None
    reason: str | None = None


@dataclass(frozen=True)
class RenderContext:
    """Extra data a renderer needs beyond the candidate itself."""

    workspace_slug: str
    mentions: tuple[str, ...] = ()
    now: datetime | None = None


@dataclass
class TickSummary:
    """Counts produced by one scheduler tick."""

    started_at: datetime
    workspaces_processed: int = 0
    workspaces_skipped: int = 0
    sent: int = 0
    deduplicated: int = 0
    suppressed: int = 0
    failed: int = 0
    skipped_overlap: bool = False
    detector_errors: list[str] = field(default_factory=list)

    def merge(self, other: "TickSummary") -> None:
        """Fold another partial summary into this one."""
        self.workspaces_processed += other.workspaces_processed
        self.workspaces_skipped += other.workspaces_skipped
        self.sent += other.sent
        self.deduplicated += other.deduplicated
        self.suppressed += other.suppressed
        self.failed += other.failed
        self.detector_errors.extend(other.detector_errors)

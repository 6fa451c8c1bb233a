"""Issue detectors that scan a workspace's boards for reminder candidates.

Each detector fetches the board graph on its own so detectors can run
concurrently without sharing state. Only the vague detector depends on
anything beyond the board data: it asks the vagueness classifier for a
verdict on every short-description card.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Iterator

from reminders.domain import (
    Board,
    BoardList,
    Card,
    CardSubject,
    IssueCandidate,
    IssueType,
    MemberSubject,
)
from reminders.interfaces import BoardDataSource
from reminders.list_roles import is_finished, is_in_progress, is_unplanned_or_finished
from reminders.vagueness import VaguenessClassifier

logger = logging.getLogger(__name__)

DEFAULT_STALE_DAYS = 14
VAGUE_DESCRIPTION_PREFILTER_CHARS = 100

_ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class DetectionContext:
    """Inputs shared by every detector for one workspace pass."""

    source: BoardDataSource
    workspace_id: str
    now: datetime
    stale_days: int = DEFAULT_STALE_DAYS
    classifier: VaguenessClassifier | None = None


Detector = Callable[[DetectionContext], Awaitable[list[IssueCandidate]]]


def _iter_cards(
    boards: list[Board],
    include_list: Callable[[str], bool],
) -> Iterator[tuple[Board, BoardList, Card]]:
    for board in boards:
        for board_list in board.lists:
            if not include_list(board_list.name):
                continue
            for card in board_list.cards:
                yield board, board_list, card


def _candidate(
    issue_type: IssueType,
    board: Board,
    board_list: BoardList,
    card: Card,
    **extra,
) -> IssueCandidate:
    return IssueCandidate(
        issue_type=issue_type,
        subject=CardSubject(board=board, list_name=board_list.name, card=card),
        **extra,
    )


def _not_finished(name: str) -> bool:
    return not is_finished(name)


def _planned_and_open(name: str) -> bool:
    return not is_unplanned_or_finished(name)


async def detect_overdue(ctx: DetectionContext) -> list[IssueCandidate]:
    """Cards with a due date in the past, outside done and archive lists."""
    boards = await ctx.source.get_boards_with_cards(ctx.workspace_id)
    return [
        _candidate(IssueType.OVERDUE, board, board_list, card)
        for board, board_list, card in _iter_cards(boards, _not_finished)
        if card.due_date is not None and card.due_date < ctx.now
    ]


async def detect_no_due_date(ctx: DetectionContext) -> list[IssueCandidate]:
    """Cards without a due date, outside done, archive, and backlog lists."""
    boards = await ctx.source.get_boards_with_cards(ctx.workspace_id)
    return [
        _candidate(IssueType.NO_DUE_DATE, board, board_list, card)
        for board, board_list, card in _iter_cards(boards, _planned_and_open)
        if card.due_date is None
    ]


def find_vague_candidates(boards: list[Board]) -> list[tuple[Board, BoardList, Card]]:
    """Cards whose description is short enough to be worth classifying."""
    return [
        (board, board_list, card)
        for board, board_list, card in _iter_cards(boards, _not_finished)
        if len((card.description or "").strip()) < VAGUE_DESCRIPTION_PREFILTER_CHARS
    ]


async def detect_vague(ctx: DetectionContext) -> list[IssueCandidate]:
    """Short-description cards the classifier judges too vague to start."""
    if ctx.classifier is None:
        raise ValueError("The vague detector requires a vagueness classifier.")
    boards = await ctx.source.get_boards_with_cards(ctx.workspace_id)
    issues: list[IssueCandidate] = []
    for board, board_list, card in find_vague_candidates(boards):
        verdict = await ctx.classifier.classify(card.title, card.description, board_list.name)
        if not verdict.is_vague:
            continue
        issues.append(
            _candidate(IssueType.VAGUE, board, board_list, card, reason=verdict.reason)
        )
    return issues


async def detect_stale(ctx: DetectionContext) -> list[IssueCandidate]:
    """In-progress cards with no activity for ``stale_days`` days."""
    boards = await ctx.source.get_boards_with_cards(ctx.workspace_id)
    threshold = ctx.now - timedelta(days=ctx.stale_days)
    issues: list[IssueCandidate] = []
    for board, board_list, card in _iter_cards(boards, is_in_progress):
        last_activity = card.updated_at or card.created_at
        if last_activity is None or last_activity >= threshold:
            continue
        days_in_list = (ctx.now - last_activity) // _ONE_DAY
        issues.append(
            _candidate(IssueType.STALE, board, board_list, card, days_in_list=days_in_list)
        )
    return issues


async def detect_unassigned(ctx: DetectionContext) -> list[IssueCandidate]:
    """Cards with nobody assigned, outside done, archive, and backlog lists."""
    boards = await ctx.source.get_boards_with_cards(ctx.workspace_id)
    return [
        _candidate(IssueType.UNASSIGNED, board, board_list, card)
        for board, board_list, card in _iter_cards(boards, _planned_and_open)
        if not card.assignees
    ]


async def detect_no_tasks(ctx: DetectionContext) -> list[IssueCandidate]:
    """Active workspace members not assigned to any open card."""
    workspace = await ctx.source.get_workspace(ctx.workspace_id)
    boards = await ctx.source.get_boards_with_cards(ctx.workspace_id)
    members_with_tasks = {
        assignee.id
        for _, _, card in _iter_cards(boards, _not_finished)
        for assignee in card.assignees
    }
    return [
        IssueCandidate(issue_type=IssueType.NO_TASKS, subject=MemberSubject(member=member))
        for member in workspace.members
        if member.status == "active" and member.id not in members_with_tasks
    ]


DETECTORS: dict[IssueType, Detector] = {
    IssueType.OVERDUE: detect_overdue,
    IssueType.NO_DUE_DATE: detect_no_due_date,
    IssueType.VAGUE: detect_vague,
    IssueType.STALE: detect_stale,
    IssueType.UNASSIGNED: detect_unassigned,
    IssueType.NO_TASKS: detect_no_tasks,
}


__all__ = [
    "DETECTORS",
    "DetectionContext",
    "Detector",
    "detect_no_due_date",
    "detect_no_tasks",
    "detect_overdue",
    "detect_stale",
    "detect_unassigned",
    "detect_vague",
    "find_vague_candidates",
]

"""Reminder scheduler: drives detection, dedup, and dispatch on a cadence.

A tick fetches the linked workspaces once, processes them concurrently, and
for each detected issue decides whether a reminder is due before sending it.
Failures are contained at the narrowest level they can be: a detector failure
skips that detector, a workspace failure skips that workspace, and a failing
send or ledger lookup skips only that reminder.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from config import settings
from logging_config import log_context
from reminders.cycle import CycleCalendar
from reminders.detectors import DETECTORS, DetectionContext
from reminders.domain import (
    ALWAYS_ON_TYPES,
    CardSubject,
    IssueCandidate,
    IssueType,
    MemberSubject,
    RenderContext,
    TickSummary,
    UserLink,
    WorkspaceLink,
)
from reminders.errors import DispatchError, LedgerError, TransientSourceError
from reminders.interfaces import BoardDataSource, LinkRepository, NotificationSink, Renderer
from reminders.ledger import ReminderLedger
from reminders.rendering import render_reminder
from reminders.vagueness import VaguenessClassifier

logger = logging.getLogger(__name__)

_PLANNING_ORDER = (
    IssueType.OVERDUE,
    IssueType.NO_DUE_DATE,
    IssueType.VAGUE,
    IssueType.STALE,
    IssueType.UNASSIGNED,
    IssueType.NO_TASKS,
)


@dataclass(frozen=True)
class SchedulerConfig:
    """Cadence and limits for the reminder scheduler."""

    interval_hours: int = 1
    stale_days: int = 14
    retention_days: int = 7
    initial_delay_seconds: float = 5.0
    prune_hour: int = 3
    max_concurrent_workspaces: int = 8


def resolve_scheduler_config() -> SchedulerConfig:
    """Build scheduler configuration from settings."""
    reminders = settings.reminders
    return SchedulerConfig(
        interval_hours=reminders.interval_hours,
        stale_days=reminders.stale_days,
        retention_days=reminders.retention_days,
        initial_delay_seconds=reminders.initial_delay_seconds,
        prune_hour=reminders.prune_hour,
        max_concurrent_workspaces=reminders.max_concurrent_workspaces,
    )


def next_interval_run(now: datetime, interval_hours: int) -> datetime:
    """Return the next top of an hour divisible by ``interval_hours`` (UTC)."""
    now = now.astimezone(timezone.utc)
    candidate = now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
    while candidate.hour % interval_hours != 0:
        candidate += timedelta(hours=1)
    return candidate


def next_daily_run(now: datetime, hour: int) -> datetime:
    """Return the next occurrence of ``hour``:00 UTC strictly after ``now``."""
    now = now.astimezone(timezone.utc)
    candidate = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


def issue_types_for(is_planning_window: bool) -> tuple[IssueType, ...]:
    """Return the issue types that run for a tick, in dispatch order."""
    if is_planning_window:
        return _PLANNING_ORDER
    return tuple(t for t in _PLANNING_ORDER if t in ALWAYS_ON_TYPES)


class ReminderScheduler:
    """Periodic issue detection and reminder dispatch for linked workspaces."""

    def __init__(
        self,
        source: BoardDataSource,
        links: LinkRepository,
        ledger: ReminderLedger,
        classifier: VaguenessClassifier,
        sink: NotificationSink,
        *,
        render: Renderer = render_reminder,
        calendar: CycleCalendar | None = None,
        config: SchedulerConfig | None = None,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        self._source = source
        self._links = links
        self._ledger = ledger
        self._classifier = classifier
        self._sink = sink
        self._render = render
        self._config = config or resolve_scheduler_config()
        self._calendar = calendar or CycleCalendar(
            settings.reminders.cycle_start_date,
            settings.reminders.cycle_length_days,
        )
        self._now_provider = now_provider or (lambda: datetime.now(timezone.utc))
        self._tick_lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    async def run_tick(self) -> TickSummary:
        """Run one detection and dispatch pass over every linked workspace.

        A tick requested while another is still running is skipped.
        """
        summary = TickSummary(started_at=self._now_provider())
        if self._tick_lock.locked():
            logger.warning("Reminder tick skipped: previous tick still running")
            summary.skipped_overlap = True
            return summary

        async with self._tick_lock:
            try:
                await self._run_tick(summary)
            except Exception:
                logger.exception("Reminder tick failed")
        logger.info(
            "Reminder tick finished: workspaces=%s skipped=%s sent=%s deduplicated=%s "
            "suppressed=%s failed=%s",
            summary.workspaces_processed,
            summary.workspaces_skipped,
            summary.sent,
            summary.deduplicated,
            summary.suppressed,
            summary.failed,
        )
        return summary

    async def _run_tick(self, summary: TickSummary) -> None:
        workspace_links = await self._links.list_workspace_links()
        if not workspace_links:
            logger.info("No linked workspaces; nothing to check")
            return
        user_links = await self._links.list_user_links()
        handles = _handles_by_email(user_links)
        logger.info("Checking %s linked workspaces for reminders", len(workspace_links))

        semaphore = asyncio.Semaphore(self._config.max_concurrent_workspaces)

        async def bounded(link: WorkspaceLink) -> TickSummary:
            async with semaphore:
                return await self.process_workspace(link, handles)

        results = await asyncio.gather(
            *(bounded(link) for link in workspace_links),
            return_exceptions=True,
        )
        for link, result in zip(workspace_links, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Workspace %s failed: %s",
                    link.workspace_id,
                    result,
                    exc_info=(type(result), result, result.__traceback__),
                )
                summary.workspaces_skipped += 1
                continue
            summary.merge(result)

    # ------------------------------------------------------------------
    # Workspace
    # ------------------------------------------------------------------

    async def process_workspace(
        self,
        link: WorkspaceLink,
        handles: dict[str, str | None],
    ) -> TickSummary:
        """Detect and dispatch reminders for a single workspace link."""
        summary = TickSummary(started_at=self._now_provider())
        with log_context({"workspace": link.workspace_id, "chat_id": link.destination}):
            try:
                workspace = await self._source.get_workspace(link.workspace_id)
            except Exception as exc:
                error = TransientSourceError(str(exc) or type(exc).__name__)
                logger.warning("Could not resolve workspace %s: %s", link.workspace_id, error)
                summary.workspaces_skipped += 1
                return summary

            now = self._now_provider()
            cycle = self._calendar.info(now)
            logger.info(
                "Processing workspace %s (%s): cycle day %s, planning window %s",
                link.display_name,
                workspace.slug,
                cycle.day,
                cycle.is_planning_window,
            )

            ctx = DetectionContext(
                source=self._source,
                workspace_id=link.workspace_id,
                now=now,
                stale_days=self._config.stale_days,
                classifier=self._classifier,
            )
            issue_types = issue_types_for(cycle.is_planning_window)
            results = await asyncio.gather(
                *(DETECTORS[issue_type](ctx) for issue_type in issue_types),
                return_exceptions=True,
            )

            for issue_type, result in zip(issue_types, results):
                if isinstance(result, BaseException):
                    logger.error("%s detector failed: %s", issue_type.value, result)
                    summary.detector_errors.append(issue_type.value)
                    continue
                for candidate in result:
                    try:
                        await self._dispatch(link, workspace.slug, candidate, handles, summary)
                    except Exception:
                        logger.exception(
                            "Unexpected error handling %s reminder for %s",
                            issue_type.value,
                            candidate.subject.label,
                        )
                        summary.failed += 1

            summary.workspaces_processed += 1
        return summary

    async def _dispatch(
        self,
        link: WorkspaceLink,
        workspace_slug: str,
        candidate: IssueCandidate,
        handles: dict[str, str | None],
        summary: TickSummary,
    ) -> None:
        issue_type = candidate.issue_type
        dedup = candidate.subject.dedup

        try:
            due = await self._ledger.due_for(
                dedup, link.destination, issue_type, now=self._now_provider()
            )
        except LedgerError as exc:
            logger.warning("Suppressing %s reminder, ledger unavailable: %s", issue_type.value, exc)
            summary.suppressed += 1
            return
        if not due:
            summary.deduplicated += 1
            return

        mentions = _mentions_for(candidate, handles)
        if isinstance(candidate.subject, MemberSubject) and not mentions:
            logger.debug(
                "Skipping no_tasks reminder for %s: no linked Telegram handle",
                candidate.subject.member.email,
            )
            return

        message = self._render(
            issue_type,
            candidate,
            RenderContext(
                workspace_slug=workspace_slug,
                mentions=mentions,
                now=self._now_provider(),
            ),
        )

        try:
            await self._send(link.destination, message)
        except DispatchError as exc:
            logger.error(
                "Failed to send %s reminder for %s: %s",
                issue_type.value,
                candidate.subject.label,
                exc,
            )
            summary.failed += 1
            return

        try:
            await self._ledger.record(dedup, link.destination, issue_type, self._now_provider())
        except LedgerError as exc:
            logger.error("Sent %s reminder but could not record it: %s", issue_type.value, exc)
        summary.sent += 1
        logger.info("Sent %s reminder for %s", issue_type.value, candidate.subject.label)

    async def _send(self, destination: int, message: str) -> None:
        try:
            delivered = await self._sink.send(destination, message)
        except Exception as exc:
            raise DispatchError(str(exc) or type(exc).__name__) from exc
        if not delivered:
            raise DispatchError("Notification sink reported delivery failure")

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    async def prune(self) -> int:
        """Delete old reminder records; returns 0 when the ledger is unavailable."""
        try:
            return await self._ledger.prune(self._config.retention_days)
        except LedgerError as exc:
            logger.error("Reminder prune failed: %s", exc)
            return 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def trigger_tick(self) -> asyncio.Task:
        """Schedule a tick on the running loop and return its task."""
        return self._spawn(self.run_tick(), "reminder-tick")

    def start(self) -> None:
        """Start the interval, initial, and prune loops plus the cache sweeper."""
        self._classifier.start_sweeper()
        self._spawn(self._initial_tick(), "reminder-initial-tick")
        self._spawn(self._interval_loop(), "reminder-interval")
        self._spawn(self._prune_loop(), "reminder-prune")
        logger.info(
            "Reminder scheduler started: every %sh, prune daily at %02d:00 UTC",
            self._config.interval_hours,
            self._config.prune_hour,
        )

    async def close(self) -> None:
        """Cancel background loops and in-flight ticks, then stop the sweeper."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        await self._classifier.close()
        logger.info("Reminder scheduler stopped")

    def _spawn(self, coro, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _initial_tick(self) -> None:
        await asyncio.sleep(self._config.initial_delay_seconds)
        await self.run_tick()

    async def _interval_loop(self) -> None:
        while True:
            now = self._now_provider()
            next_run = next_interval_run(now, self._config.interval_hours)
            await asyncio.sleep((next_run - now).total_seconds())
            self.trigger_tick()

    async def _prune_loop(self) -> None:
        while True:
            now = self._now_provider()
            next_run = next_daily_run(now, self._config.prune_hour)
            await asyncio.sleep((next_run - now).total_seconds())
            await self.prune()


def _handles_by_email(user_links: list[UserLink]) -> dict[str, str | None]:
    return {link.email.strip().lower(): link.handle for link in user_links}


def _mentions_for(
    candidate: IssueCandidate,
    handles: dict[str, str | None],
) -> tuple[str, ...]:
    subject = candidate.subject
    if isinstance(subject, CardSubject):
        emails = [assignee.email for assignee in subject.card.assignees]
    else:
        emails = [subject.member.email]
    mentions = []
    for email in emails:
        handle = handles.get(email.strip().lower())
        if handle:
            mentions.append(handle)
    return tuple(mentions)


__all__ = [
    "ReminderScheduler",
    "SchedulerConfig",
    "issue_types_for",
    "next_daily_run",
    "next_interval_run",
    "resolve_scheduler_config",
]

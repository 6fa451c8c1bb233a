"""Unit tests for the reminder scheduler tick and dispatch rules."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from reminders.cycle import DEFAULT_EPOCH, CycleCalendar
from reminders.domain import IssueType, UserLink, Workspace, WorkspaceLink
from reminders.ledger import ReminderLedger
from reminders.scheduler import (
    ReminderScheduler,
    SchedulerConfig,
    issue_types_for,
    next_daily_run,
    next_interval_run,
)
from reminders.vagueness import VaguenessClassifier
from reminder_fakes import (
    FakeLinks,
    FakeSource,
    MemoryStore,
    RecordingSink,
    StubCompletionClient,
    assignee,
    make_board,
    make_card,
    make_list,
    member,
)

CHAT = -100123
# Day 2 of a cycle, inside the planning window.
PLANNING_DAY = DEFAULT_EPOCH + timedelta(days=1, hours=10)
# Day 6 of a cycle, outside the planning window.
REGULAR_DAY = DEFAULT_EPOCH + timedelta(days=5, hours=10)

ALICE = assignee("m-alice", "alice@example.com")


def _workspace() -> Workspace:
    return Workspace(
        id="ws-1",
        slug="team",
        name="Team",
        members=(
            member("m-alice", "alice@example.com"),
            member("m-bob", "bob@example.com"),
            member("m-carol", "carol@example.com"),
        ),
    )


def _boards(now: datetime):
    return [
        make_board(
            make_list(
                "In Progress",
                make_card("c-overdue", title="Ship v2", due_date=now - timedelta(days=1),
                          assignees=(ALICE,)),
            ),
            make_list(
                "To Do",
                make_card("c-planned", title="Plan launch", due_date=now + timedelta(days=3),
                          assignees=(ALICE,)),
            ),
        )
    ]


class _Harness:
    """Scheduler wired to in-memory collaborators."""

    def __init__(
        self,
        now: datetime,
        *,
        links: FakeLinks | None = None,
        source: FakeSource | None = None,
        sink: RecordingSink | None = None,
    ) -> None:
        self.now = now
        self.store = MemoryStore()
        self.sink = sink or RecordingSink()
        self.links = links or FakeLinks(
            workspace_links=[WorkspaceLink(destination=CHAT, workspace_id="ws-1",
                                           display_name="Team")],
            user_links=[
                UserLink(email="Alice@Example.com", telegram_user_id=1, handle="alice"),
                UserLink(email="bob@example.com", telegram_user_id=2, handle="bob"),
            ],
        )
        self.source = source or FakeSource(
            boards={"ws-1": _boards(now)},
            workspaces={"ws-1": _workspace()},
        )
        self.scheduler = ReminderScheduler(
            self.source,
            self.links,
            ReminderLedger(self.store, now_provider=self.clock),
            VaguenessClassifier(StubCompletionClient(), now_provider=self.clock),
            self.sink,
            calendar=CycleCalendar(DEFAULT_EPOCH),
            config=SchedulerConfig(max_concurrent_workspaces=2),
            now_provider=self.clock,
        )

    def clock(self) -> datetime:
        return self.now


def test_issue_types_for_window() -> None:
    assert issue_types_for(False) == (IssueType.OVERDUE, IssueType.STALE, IssueType.UNASSIGNED)
    assert set(issue_types_for(True)) == set(IssueType)


def test_next_interval_run_aligns_to_hour_multiples() -> None:
    now = datetime(2025, 1, 6, 10, 15, tzinfo=timezone.utc)

    assert next_interval_run(now, 1) == datetime(2025, 1, 6, 11, 0, tzinfo=timezone.utc)
    assert next_interval_run(now, 4) == datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc)
    assert next_interval_run(now, 24) == datetime(2025, 1, 7, 0, 0, tzinfo=timezone.utc)


def test_next_daily_run_is_strictly_after_now() -> None:
    at_three = datetime(2025, 1, 6, 3, 0, tzinfo=timezone.utc)

    assert next_daily_run(at_three, 3) == datetime(2025, 1, 7, 3, 0, tzinfo=timezone.utc)
    assert next_daily_run(at_three - timedelta(minutes=1), 3) == at_three


@pytest.mark.asyncio
async def test_tick_outside_planning_window_sends_always_on_reminders() -> None:
    """Outside the window only overdue, stale, and unassigned detectors run."""
    harness = _Harness(REGULAR_DAY)

    summary = await harness.scheduler.run_tick()

    assert summary.workspaces_processed == 1
    assert summary.sent == 1
    assert len(harness.sink.sent) == 1
    destination, message = harness.sink.sent[0]
    assert destination == CHAT
    assert "Ship v2" in message
    assert "@alice" in message
    assert ("no_tasks:m-bob", CHAT, "no_tasks") not in harness.store.rows


@pytest.mark.asyncio
async def test_tick_in_planning_window_adds_member_reminders() -> None:
    """Members with a linked handle and no open cards are reminded in the window."""
    harness = _Harness(PLANNING_DAY)

    summary = await harness.scheduler.run_tick()

    assert summary.sent == 2
    assert ("c-overdue", CHAT, "overdue") in harness.store.rows
    assert ("no_tasks:m-bob", CHAT, "no_tasks") in harness.store.rows
    assert any("@bob" in message for _, message in harness.sink.sent)


@pytest.mark.asyncio
async def test_member_without_handle_is_skipped_and_not_recorded() -> None:
    harness = _Harness(PLANNING_DAY)

    await harness.scheduler.run_tick()

    assert ("no_tasks:m-carol", CHAT, "no_tasks") not in harness.store.rows
    assert not any("Carol" in message for _, message in harness.sink.sent)


@pytest.mark.asyncio
async def test_repeat_tick_within_cooldown_is_deduplicated() -> None:
    """A second tick inside the cooldown sends nothing new."""
    harness = _Harness(REGULAR_DAY)
    await harness.scheduler.run_tick()

    harness.now += timedelta(hours=1)
    summary = await harness.scheduler.run_tick()

    assert summary.sent == 0
    assert summary.deduplicated == 1
    assert len(harness.sink.sent) == 1


@pytest.mark.asyncio
async def test_tick_after_cooldown_sends_again() -> None:
    harness = _Harness(REGULAR_DAY)
    await harness.scheduler.run_tick()

    harness.now += timedelta(hours=24)
    summary = await harness.scheduler.run_tick()

    assert summary.sent == 1
    assert len(harness.sink.sent) == 2


@pytest.mark.asyncio
async def test_failed_send_is_not_recorded_and_retries_next_tick() -> None:
    """A rejected send leaves no ledger record, so the next tick retries it."""
    harness = _Harness(REGULAR_DAY, sink=RecordingSink(result=False))

    summary = await harness.scheduler.run_tick()

    assert summary.failed == 1
    assert summary.sent == 0
    assert harness.store.rows == {}

    harness.sink.result = True
    harness.now += timedelta(hours=1)
    retry = await harness.scheduler.run_tick()

    assert retry.sent == 1


@pytest.mark.asyncio
async def test_sink_exception_counts_as_failed_send() -> None:
    harness = _Harness(REGULAR_DAY, sink=RecordingSink(error=ConnectionError("down")))

    summary = await harness.scheduler.run_tick()

    assert summary.failed == 1
    assert harness.store.rows == {}


@pytest.mark.asyncio
async def test_ledger_failure_suppresses_send() -> None:
    """When the ledger cannot be read the reminder is not sent."""
    harness = _Harness(REGULAR_DAY)
    harness.store.fail_reads = True

    summary = await harness.scheduler.run_tick()

    assert summary.suppressed == 1
    assert harness.sink.sent == []


@pytest.mark.asyncio
async def test_ledger_write_failure_still_counts_send() -> None:
    harness = _Harness(REGULAR_DAY)
    harness.store.fail_writes = True

    summary = await harness.scheduler.run_tick()

    assert summary.sent == 1
    assert len(harness.sink.sent) == 1


@pytest.mark.asyncio
async def test_unresolvable_workspace_does_not_block_others() -> None:
    """A workspace whose metadata cannot be fetched is skipped on its own."""
    links = FakeLinks(
        workspace_links=[
            WorkspaceLink(destination=1, workspace_id="missing", display_name="Gone"),
            WorkspaceLink(destination=CHAT, workspace_id="ws-1", display_name="Team"),
        ],
        user_links=[UserLink(email="alice@example.com", telegram_user_id=1, handle="alice")],
    )
    harness = _Harness(REGULAR_DAY, links=links)

    summary = await harness.scheduler.run_tick()

    assert summary.workspaces_skipped == 1
    assert summary.workspaces_processed == 1
    assert [destination for destination, _ in harness.sink.sent] == [CHAT]


@pytest.mark.asyncio
async def test_detector_failures_are_recorded_and_contained() -> None:
    source = FakeSource(workspaces={"ws-1": _workspace()}, failing_boards={"ws-1"})
    harness = _Harness(REGULAR_DAY, source=source)

    summary = await harness.scheduler.run_tick()

    assert summary.workspaces_processed == 1
    assert sorted(summary.detector_errors) == ["overdue", "stale", "unassigned"]
    assert harness.sink.sent == []


@pytest.mark.asyncio
async def test_no_links_is_a_noop() -> None:
    links = FakeLinks()
    harness = _Harness(REGULAR_DAY, links=links)

    summary = await harness.scheduler.run_tick()

    assert summary.workspaces_processed == 0
    assert links.user_link_calls == 0
    assert harness.source.board_calls == 0


class _BlockingLinks(FakeLinks):
    """Link repository that blocks until released."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def list_workspace_links(self):
        self.entered.set()
        await self.release.wait()
        return []


@pytest.mark.asyncio
async def test_overlapping_tick_is_skipped() -> None:
    """A tick requested while another is in flight is skipped."""
    links = _BlockingLinks()
    harness = _Harness(REGULAR_DAY, links=links)

    first = harness.scheduler.trigger_tick()
    await links.entered.wait()
    overlapping = await harness.scheduler.run_tick()
    links.release.set()
    completed = await first

    assert overlapping.skipped_overlap is True
    assert completed.skipped_overlap is False
    await harness.scheduler.close()


@pytest.mark.asyncio
async def test_prune_uses_retention_days() -> None:
    harness = _Harness(REGULAR_DAY)
    harness.store.rows[("old", CHAT, "overdue")] = REGULAR_DAY - timedelta(days=8)
    harness.store.rows[("new", CHAT, "overdue")] = REGULAR_DAY - timedelta(days=1)

    removed = await harness.scheduler.prune()

    assert removed == 1
    assert list(harness.store.rows) == [("new", CHAT, "overdue")]


@pytest.mark.asyncio
async def test_start_and_close_manage_background_tasks() -> None:
    harness = _Harness(REGULAR_DAY)

    harness.scheduler.start()
    await harness.scheduler.close()

    assert harness.scheduler._tasks == set()


class _GatedSource(FakeSource):
    """Source whose workspace lookups block until released."""

    def __init__(self, workspaces: dict[str, Workspace]) -> None:
        super().__init__(workspaces=workspaces)
        self.release = asyncio.Event()
        self.started = 0
        self.in_flight = 0
        self.peak = 0

    async def get_workspace(self, workspace_id: str) -> Workspace:
        self.started += 1
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await self.release.wait()
            return await super().get_workspace(workspace_id)
        finally:
            self.in_flight -= 1


@pytest.mark.asyncio
async def test_workspace_fan_out_respects_concurrency_limit() -> None:
    """With a cap of two, the third workspace waits for a free slot."""
    ids = ["ws-1", "ws-2", "ws-3"]
    source = _GatedSource(
        {ws: Workspace(id=ws, slug=ws, name=ws, members=()) for ws in ids}
    )
    links = FakeLinks(
        workspace_links=[
            WorkspaceLink(destination=CHAT - index, workspace_id=ws, display_name=ws)
            for index, ws in enumerate(ids)
        ]
    )
    harness = _Harness(REGULAR_DAY, links=links, source=source)

    tick = harness.scheduler.trigger_tick()
    for _ in range(20):
        await asyncio.sleep(0)

    assert source.started == 2
    assert source.in_flight == 2

    source.release.set()
    summary = await tick

    assert source.started == 3
    assert source.peak == 2
    assert summary.workspaces_processed == 3
    await harness.scheduler.close()

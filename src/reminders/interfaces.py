"""Collaborator contracts consumed by the reminder scheduler."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from reminders.domain import (
    Board,
    IssueCandidate,
    IssueType,
    RenderContext,
    UserLink,
    Workspace,
    WorkspaceLink,
)


class BoardDataSource(Protocol):
    """Read access to workspaces and their board graph."""

    async def get_workspace(self, workspace_id: str) -> Workspace:
        """Return workspace metadata including members."""
        ...

    async def get_boards_with_cards(self, workspace_id: str) -> list[Board]:
        """Return every board of the workspace with lists and cards populated."""
        ...


class LinkRepository(Protocol):
    """Read access to chat and user links created by the linking flow."""

    async def list_workspace_links(self) -> list[WorkspaceLink]:
        ...

    async def list_user_links(self) -> list[UserLink]:
        ...


class ReminderStore(Protocol):
    """Durable key-value storage behind the reminder ledger."""

    async def get(self, key: tuple[str, int, str]) -> datetime | None:
        ...

    async def upsert(self, key: tuple[str, int, str], timestamp: datetime) -> None:
        ...

    async def delete_older_than(self, cutoff: datetime) -> int:
        ...


class NotificationSink(Protocol):
    """Delivery channel for rendered reminders."""

    async def send(self, destination: int, message: str) -> bool:
        """Deliver a message, returning False when delivery failed."""
        ...


class Renderer(Protocol):
    """Pure formatting of an issue into a chat message."""

    def __call__(
        self,
        issue_type: IssueType,
        candidate: IssueCandidate,
        context: RenderContext,
    ) -> str:
        ...


class CompletionClient(Protocol):
    """Text completion backend used for vagueness classification."""

    async def complete(
        self,
        messages: list[dict[str, str]],
        temperature: float = 0.0,
        max_tokens: int = 400,
    ) -> str:
        ...

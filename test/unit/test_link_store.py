"""Unit tests for the SQLAlchemy link repository."""

from __future__ import annotations

from contextlib import closing

import pytest

from models import UserLinkRow, WorkspaceLinkRow
from reminders.domain import UserLink, WorkspaceLink
from services.link_store import SqlAlchemyLinkRepository


@pytest.mark.asyncio
async def test_link_repository_reads_links(sqlite_session_factory) -> None:
    """Workspace and user links are mapped to domain types."""
    with closing(sqlite_session_factory()) as session:
        session.add(
            WorkspaceLinkRow(
                telegram_chat_id=-100123,
                workspace_public_id="ws-1",
                workspace_name="Team",
                created_by_telegram_user_id=1,
            )
        )
        session.add(
            UserLinkRow(
                telegram_user_id=42,
                telegram_username="alice",
                kan_user_email=" Alice@Example.com ",
            )
        )
        session.commit()

    repository = SqlAlchemyLinkRepository(sqlite_session_factory)

    assert await repository.list_workspace_links() == [
        WorkspaceLink(destination=-100123, workspace_id="ws-1", display_name="Team")
    ]
    assert await repository.list_user_links() == [
        UserLink(email="alice@example.com", telegram_user_id=42, handle="alice")
    ]

"""Read access to Telegram workspace and user links."""

from __future__ import annotations

import asyncio
from contextlib import closing
from typing import Callable

from sqlalchemy.orm import Session

from models import UserLinkRow, WorkspaceLinkRow
from reminders.domain import UserLink, WorkspaceLink


class SqlAlchemyLinkRepository:
    """Link repository over the ``telegram_workspace_links`` and ``telegram_user_links`` tables.

    Rows are written by the chat linking flow; this repository only reads them.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    async def list_workspace_links(self) -> list[WorkspaceLink]:
        return await asyncio.to_thread(self._list_workspace_links)

    async def list_user_links(self) -> list[UserLink]:
        return await asyncio.to_thread(self._list_user_links)

    def _list_workspace_links(self) -> list[WorkspaceLink]:
        with closing(self._session_factory()) as session:
            rows = session.query(WorkspaceLinkRow).order_by(WorkspaceLinkRow.id).all()
            return [
                WorkspaceLink(
                    destination=int(row.telegram_chat_id),
                    workspace_id=row.workspace_public_id,
                    display_name=row.workspace_name,
                )
                for row in rows
            ]

    def _list_user_links(self) -> list[UserLink]:
        with closing(self._session_factory()) as session:
            rows = session.query(UserLinkRow).order_by(UserLinkRow.id).all()
            return [
                UserLink(
                    email=row.kan_user_email.strip().lower(),
                    telegram_user_id=int(row.telegram_user_id),
                    handle=row.telegram_username,
                )
                for row in rows
            ]

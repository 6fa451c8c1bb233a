"""Kan task board REST API client."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from config import settings
from reminders.domain import Assignee, Board, BoardList, Card, Member, Workspace
from reminders.errors import TransientSourceError
from services.http_client import AsyncHttpClient, RetryConfig

logger = logging.getLogger(__name__)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp from the API as an aware UTC datetime."""
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Ignoring unparsable timestamp from Kan: %r", value)
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _display_name(payload: dict[str, Any]) -> str | None:
    user = payload.get("user")
    if isinstance(user, dict):
        return user.get("name")
    return None


def parse_member(payload: dict[str, Any]) -> Member:
    return Member(
        id=str(payload["publicId"]),
        email=str(payload.get("email") or ""),
        status=str(payload.get("status") or ""),
        name=_display_name(payload),
    )


def parse_card(payload: dict[str, Any]) -> Card:
    assignees = tuple(
        Assignee(
            id=str(member["publicId"]),
            email=str(member.get("email") or ""),
            name=_display_name(member),
        )
        for member in payload.get("members") or []
    )
    return Card(
        id=str(payload["publicId"]),
        title=str(payload.get("title") or ""),
        description=payload.get("description"),
        due_date=parse_timestamp(payload.get("dueDate")),
        updated_at=parse_timestamp(payload.get("updatedAt")),
        created_at=parse_timestamp(payload.get("createdAt")),
        assignees=assignees,
    )


def parse_board(payload: dict[str, Any]) -> Board:
    lists = tuple(
        BoardList(
            name=str(board_list.get("name") or ""),
            cards=tuple(parse_card(card) for card in board_list.get("cards") or []),
        )
        for board_list in payload.get("lists") or []
    )
    return Board(
        id=str(payload["publicId"]),
        name=str(payload.get("name") or ""),
        slug=str(payload.get("slug") or ""),
        lists=lists,
    )


class KanClient:
    """Read-only access to Kan workspaces and boards using a service API key."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        http: AsyncHttpClient | None = None,
    ):
        self.base_url = (base_url or settings.kan.base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.kan.api_key
        self._http = http or AsyncHttpClient(retry_config=RetryConfig(max_attempts=3))

    async def _get(self, path: str) -> Any:
        url = f"{self.base_url}/api/v1{path}"
        try:
            response = await self._http.get(
                url,
                headers={"Content-Type": "application/json", "x-api-key": self.api_key or ""},
            )
            if response is None:
                raise TransientSourceError(f"Kan API request failed: GET {path}")
            return response.json()
        except httpx.HTTPStatusError as e:
            raise TransientSourceError(
                f"Kan API error ({e.response.status_code}) for GET {path}"
            ) from e
        except (httpx.RequestError, ValueError) as e:
            raise TransientSourceError(f"Kan API request failed for GET {path}: {e}") from e

    async def get_workspace(self, workspace_id: str) -> Workspace:
        """Fetch workspace metadata and members."""
        payload = await self._get(f"/workspaces/{workspace_id}")
        try:
            return Workspace(
                id=str(payload.get("publicId") or workspace_id),
                slug=str(payload["slug"]),
                name=str(payload.get("name") or ""),
                members=tuple(parse_member(member) for member in payload.get("members") or []),
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise TransientSourceError(f"Malformed workspace payload for {workspace_id}") from e

    async def get_boards_with_cards(self, workspace_id: str) -> list[Board]:
        """Fetch every board of a workspace with its lists and cards."""
        summaries = await self._get(f"/workspaces/{workspace_id}/boards")
        boards: list[Board] = []
        for summary in summaries or []:
            board_id = summary.get("publicId") if isinstance(summary, dict) else None
            if not board_id:
                continue
            payload = await self._get(f"/boards/{board_id}")
            try:
                boards.append(parse_board(payload))
            except (KeyError, TypeError, AttributeError) as e:
                raise TransientSourceError(f"Malformed board payload for {board_id}") from e
        logger.debug("Fetched %s boards for workspace %s", len(boards), workspace_id)
        return boards

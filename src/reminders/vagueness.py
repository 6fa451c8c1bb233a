"""LLM-backed vagueness classification for task cards."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from config import settings
from llm import LLMClient
from prompts import render_vagueness_prompt
from reminders.errors import ClassifierError
from reminders.interfaces import CompletionClient

logger = logging.getLogger(__name__)

FALLBACK_MAX_DESCRIPTION_CHARS = 30
FALLBACK_MAX_TITLE_CHARS = 20


@dataclass(frozen=True)
class VaguenessVerdict:
    """Classifier decision for one card."""

    is_vague: bool
    reason: str | None = None


@dataclass(frozen=True)
class _CacheEntry:
    verdict: VaguenessVerdict
    computed_at: datetime


NOT_VAGUE = VaguenessVerdict(is_vague=False, reason=None)


def cache_key(title: str, description: str | None) -> str:
    """Return the cache key for a title/description pair."""
    return f"{title}::{description or ''}"


def heuristic_verdict(title: str, description: str | None) -> VaguenessVerdict:
    """Deterministic fallback used when the classifier call fails."""
    description_length = len((description or "").strip())
    return VaguenessVerdict(
        is_vague=(
            description_length < FALLBACK_MAX_DESCRIPTION_CHARS
            and len(title) < FALLBACK_MAX_TITLE_CHARS
        ),
        reason=None,
    )


def parse_verdict(response: str) -> VaguenessVerdict:
    """Parse the first well-formed JSON verdict embedded in a model reply."""
    decoder = json.JSONDecoder()
    index = response.find("{")
    while index != -1:
        try:
            data, _ = decoder.raw_decode(response, index)
        except json.JSONDecodeError:
            index = response.find("{", index + 1)
            continue
        if isinstance(data, dict) and isinstance(data.get("isVague"), bool):
            reason = data.get("reason")
            if reason is not None:
                reason = str(reason).strip() or None
            return VaguenessVerdict(is_vague=data["isVague"], reason=reason)
        index = response.find("{", index + 1)
    raise ValueError("Model response did not include a vagueness verdict.")


class VaguenessClassifier:
    """Classifies cards as vague, memoizing successful verdicts for 24 hours."""

    def __init__(
        self,
        client: CompletionClient | None = None,
        *,
        ttl: timedelta | None = None,
        sweep_interval_seconds: float | None = None,
        max_tokens: int | None = None,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        self._client = client or LLMClient(model=settings.vagueness.model)
        self._ttl = ttl or timedelta(hours=settings.vagueness.cache_ttl_hours)
        self._sweep_interval = (
            sweep_interval_seconds
            if sweep_interval_seconds is not None
            else settings.vagueness.sweep_interval_seconds
        )
        self._max_tokens = max_tokens or settings.vagueness.max_tokens
        self._now_provider = now_provider or (lambda: datetime.now(timezone.utc))
        self._cache: dict[str, _CacheEntry] = {}
        self._sweeper: asyncio.Task | None = None

    def __len__(self) -> int:
        return len(self._cache)

    async def classify(
        self,
        title: str,
        description: str | None,
        list_context: str,
    ) -> VaguenessVerdict:
        """Return whether a card is too vague to start work on."""
        key = cache_key(title, description)
        now = self._now_provider()
        cached = self._cache.get(key)
        if cached is not None and now - cached.computed_at < self._ttl:
            return cached.verdict

        try:
            response = await self._call_model(title, description, list_context)
        except ClassifierError as exc:
            logger.warning("Vagueness classifier unavailable, using heuristic: %s", exc)
            return heuristic_verdict(title, description)

        try:
            verdict = parse_verdict(response)
        except ValueError:
            logger.error("Failed to parse vagueness response: %r", response)
            return NOT_VAGUE

        self._cache[key] = _CacheEntry(verdict=verdict, computed_at=now)
        return verdict

    async def _call_model(
        self,
        title: str,
        description: str | None,
        list_context: str,
    ) -> str:
        prompt = render_vagueness_prompt(title, description, list_context)
        try:
            return await self._client.complete(
                messages=[{"role": "user", "content": prompt}],
                temperature=0.0,
                max_tokens=self._max_tokens,
            )
        except Exception as exc:
            raise ClassifierError(str(exc) or type(exc).__name__) from exc

    def sweep(self, now: datetime | None = None) -> int:
        """Evict expired cache entries and return how many were removed."""
        cutoff = (now or self._now_provider()) - self._ttl
        expired = [key for key, entry in self._cache.items() if entry.computed_at <= cutoff]
        for key in expired:
            del self._cache[key]
        if expired:
            logger.debug("Evicted %s expired vagueness verdicts", len(expired))
        return len(expired)

    def start_sweeper(self) -> None:
        """Start the periodic cache sweep on the running event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop(), name="vagueness-sweeper")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            self.sweep()

    async def close(self) -> None:
        """Stop the background sweep."""
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None


__all__ = [
    "VaguenessClassifier",
    "VaguenessVerdict",
    "cache_key",
    "heuristic_verdict",
    "parse_verdict",
]

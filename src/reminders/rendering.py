"""Telegram MarkdownV2 rendering of reminder messages."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

from config import settings
from reminders.domain import (
    CardSubject,
    IssueCandidate,
    IssueType,
    MemberSubject,
    RenderContext,
)

_MARKDOWN_SPECIALS = re.compile(r"([_*\[\]()~`>#+=|{}.!\\-])")
_ONE_DAY = timedelta(days=1)


def escape_markdown(text: str) -> str:
    """Escape Telegram MarkdownV2 special characters."""
    return _MARKDOWN_SPECIALS.sub(r"\\\1", text)


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def format_due_date(due_date: datetime | None, now: datetime) -> str:
    """Describe a due date relative to ``now``."""
    if due_date is None:
        return "No due date"
    diff_days = (due_date - now) // _ONE_DAY
    date_text = f"{due_date:%b} {due_date.day}"
    if due_date.year != now.year:
        date_text += f", {due_date.year}"
    if diff_days < 0:
        return f"{date_text} ({_plural(abs(diff_days), 'day')} overdue)"
    if diff_days == 0:
        return f"{date_text} (today)"
    if diff_days == 1:
        return f"{date_text} (tomorrow)"
    if diff_days <= 7:
        return f"{date_text} (in {diff_days} days)"
    return date_text


def _card_url(subject: CardSubject, workspace_slug: str) -> str:
    base_url = settings.kan.base_url.rstrip("/")
    return f"{base_url}/{workspace_slug}/{subject.board.slug}?card={subject.card.id}"


def _card_header(subject: CardSubject) -> str:
    return (
        f"*{escape_markdown(subject.card.title)}*\n"
        f"List: {escape_markdown(subject.list_name)} in {escape_markdown(subject.board.name)}\n"
    )


def _mentions(context: RenderContext) -> str:
    return " ".join(f"@{escape_markdown(handle)}" for handle in context.mentions)


def _render_card(
    issue_type: IssueType,
    candidate: IssueCandidate,
    subject: CardSubject,
    context: RenderContext,
) -> str:
    now = context.now or datetime.now(timezone.utc)
    mentions = _mentions(context)
    link = f"[View task]({_card_url(subject, context.workspace_slug)})"
    header = _card_header(subject)

    if issue_type is IssueType.OVERDUE:
        days_overdue = (now - subject.card.due_date) // _ONE_DAY
        body = f"Task overdue by {_plural(days_overdue, 'day')}\\!\n\n{header}"
        body += f"Due: {escape_markdown(format_due_date(subject.card.due_date, now))}\n\n"
        return f"{body}{mentions} {link}" if mentions else f"{body}{link}"

    if issue_type is IssueType.NO_DUE_DATE:
        ask = (
            f"{mentions}, when do you expect to finish this\\?"
            if mentions
            else "When should this be done\\?"
        )
        return f"📅 Task needs a due date\n\n{header}\n{ask}\n\n{link}"

    if issue_type is IssueType.VAGUE:
        reason = f"_{escape_markdown(candidate.reason)}_\n" if candidate.reason else ""
        ask = (
            f"{mentions}, can you add more detail\\?"
            if mentions
            else "This task needs more detail\\."
        )
        return f"📝 Task needs more detail\n\n{header}{reason}\n{ask}\n\n{link}"

    if issue_type is IssueType.STALE:
        days = candidate.days_in_list or 0
        ask = (
            f"{mentions}, need help unblocking this\\?"
            if mentions
            else "This task may be blocked\\."
        )
        return (
            f"⏰ Task stuck in progress\n\n{header}"
            f"In progress for {_plural(days, 'day')}\n\n{ask}\n\n{link}"
        )

    if issue_type is IssueType.UNASSIGNED:
        return f"👤 Task needs an owner\n\n{header}\nWho's working on this\\?\n\n{link}"

    raise ValueError(f"Unsupported card issue type: {issue_type}")


def _render_member(subject: MemberSubject, context: RenderContext) -> str:
    if context.mentions:
        mention = f"@{escape_markdown(context.mentions[0])}"
    else:
        mention = escape_markdown(subject.member.name or "Someone")
    base_url = settings.kan.base_url.rstrip("/")
    return (
        "📋 No tasks for the sprint\\?\n\n"
        f"{mention}, you don't have any tasks assigned\\.\n"
        "Add your work to the board so we can track it\\!\n\n"
        f"[Open workspace]({base_url}/{context.workspace_slug})"
    )


def render_reminder(
    issue_type: IssueType,
    candidate: IssueCandidate,
    context: RenderContext,
) -> str:
    """Render a reminder message for Telegram's MarkdownV2 parse mode."""
    subject = candidate.subject
    if isinstance(subject, MemberSubject):
        return _render_member(subject, context)
    return _render_card(issue_type, candidate, subject, context)


__all__ = ["escape_markdown", "format_due_date", "render_reminder"]

"""Data models for the Kan reminder scheduler."""

from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

# SQLAlchemy base
Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkspaceLinkRow(Base):
    """Telegram group chat linked to a Kan workspace."""

    __tablename__ = "telegram_workspace_links"

    id = Column(Integer, primary_key=True)
    telegram_chat_id = Column(BigInteger, nullable=False, unique=True)
    workspace_public_id = Column(String(100), nullable=False)
    workspace_name = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    created_by_telegram_user_id = Column(BigInteger, nullable=False)


class UserLinkRow(Base):
    """Telegram user mapped to their Kan account email."""

    __tablename__ = "telegram_user_links"

    id = Column(Integer, primary_key=True)
    telegram_user_id = Column(BigInteger, nullable=False, unique=True)
    telegram_username = Column(String(100), nullable=True)
    kan_user_email = Column(String(320), nullable=False)
    workspace_member_public_id = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    created_by_telegram_user_id = Column(BigInteger, nullable=True)


class ReminderRecordRow(Base):
    """Last reminder sent for a (subject, chat, issue type) triple."""

    __tablename__ = "telegram_reminders"
    __table_args__ = (
        UniqueConstraint(
            "card_public_id",
            "telegram_chat_id",
            "reminder_type",
            name="uq_telegram_reminders_subject_chat_type",
        ),
        Index("ix_telegram_reminders_last_reminder_at", "last_reminder_at"),
    )

    id = Column(Integer, primary_key=True)
    card_public_id = Column(String(200), nullable=False)
    telegram_chat_id = Column(BigInteger, nullable=False)
    reminder_type = Column(String(50), nullable=False, default="overdue")
    last_reminder_at = Column(DateTime(timezone=True), nullable=False)

"""Create link and reminder tables.

Revision ID: 0001_reminder_tables
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_reminder_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create workspace link, user link, and reminder tables."""
    op.create_table(
        "telegram_workspace_links",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("telegram_chat_id", sa.BigInteger(), nullable=False, unique=True),
        sa.Column("workspace_public_id", sa.String(length=100), nullable=False),
        sa.Column("workspace_name", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by_telegram_user_id", sa.BigInteger(), nullable=False),
    )
    op.create_table(
        "telegram_user_links",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("telegram_user_id", sa.BigInteger(), nullable=False, unique=True),
        sa.Column("telegram_username", sa.String(length=100), nullable=True),
        sa.Column("kan_user_email", sa.String(length=320), nullable=False),
        sa.Column("workspace_member_public_id", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by_telegram_user_id", sa.BigInteger(), nullable=True),
    )
    op.create_table(
        "telegram_reminders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("card_public_id", sa.String(length=200), nullable=False),
        sa.Column("telegram_chat_id", sa.BigInteger(), nullable=False),
        sa.Column("reminder_type", sa.String(length=50), nullable=False),
        sa.Column("last_reminder_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "card_public_id",
            "telegram_chat_id",
            "reminder_type",
            name="uq_telegram_reminders_subject_chat_type",
        ),
    )
    op.create_index(
        "ix_telegram_reminders_last_reminder_at",
        "telegram_reminders",
        ["last_reminder_at"],
        unique=False,
    )


def downgrade() -> None:
    """Drop reminder and link tables."""
    op.drop_index("ix_telegram_reminders_last_reminder_at", table_name="telegram_reminders")
    op.drop_table("telegram_reminders")
    op.drop_table("telegram_user_links")
    op.drop_table("telegram_workspace_links")

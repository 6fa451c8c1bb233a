"""Pytest configuration for the Kan reminder test suite."""

import os
import sys
from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


def _ensure_test_env() -> None:
    """Seed required environment variables for tests."""
    os.environ.setdefault("TELEGRAM_BOT_TOKEN", "123456:test-token")
    os.environ.setdefault("KAN_SERVICE_API_KEY", "test-kan-key")
    os.environ.setdefault("KAN_BASE_URL", "https://kan.test")
    os.environ.setdefault("TELEGRAM_API_URL", "https://telegram.test")
    os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")


_ensure_test_env()

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))


@pytest.fixture()
def sqlite_session_factory() -> Generator[sessionmaker, None, None]:
    """Provide a sqlite session factory shared across worker threads."""
    from models import Base

    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    yield factory
    engine.dispose()

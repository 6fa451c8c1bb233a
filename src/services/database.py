"""Database engine, session factory, and schema migrations."""

import asyncio
import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from config import settings
from models import Base

logger = logging.getLogger(__name__)

_engine: Engine | None = None
_session_factory: sessionmaker | None = None


def get_engine() -> Engine:
    """Return the process-wide engine, creating it on first use."""
    global _engine
    if _engine is None:
        url = settings.database.url
        connect_args = {}
        if url.startswith("sqlite"):
            # Sessions are used from worker threads via asyncio.to_thread.
            connect_args["check_same_thread"] = False
            _ensure_sqlite_directory(url)
        _engine = create_engine(url, pool_pre_ping=True, connect_args=connect_args)
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(bind=get_engine(), expire_on_commit=False)
    return _session_factory


def _ensure_sqlite_directory(url: str) -> None:
    prefix = "sqlite:///"
    if not url.startswith(prefix) or url == "sqlite:///:memory:":
        return
    Path(url[len(prefix):]).parent.mkdir(parents=True, exist_ok=True)


def _run_migrations() -> None:
    alembic_ini = Path(__file__).resolve().parents[2] / "alembic.ini"
    if not alembic_ini.exists():
        logger.warning("alembic.ini not found; creating tables from models")
        Base.metadata.create_all(get_engine())
        return
    alembic_cfg = Config(str(alembic_ini))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.database.url)
    command.upgrade(alembic_cfg, "head")


async def init_db() -> None:
    """Apply database migrations."""
    await asyncio.to_thread(_run_migrations)
    logger.info("Database migrations applied")

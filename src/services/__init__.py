"""External integrations for the Kan reminder scheduler."""

from services.database import get_session_factory, init_db
from services.kan import KanClient
from services.link_store import SqlAlchemyLinkRepository
from services.telegram import TelegramClient

__all__ = [
    "init_db",
    "get_session_factory",
    "KanClient",
    "SqlAlchemyLinkRepository",
    "TelegramClient",
]

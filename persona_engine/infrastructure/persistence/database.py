"""
SQLAlchemy engine and session setup.

The engine is created lazily from `settings.database_url` so that importing
the models never opens a connection.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from persona_engine.infrastructure.config.settings import settings

logger = logging.getLogger(__name__)

# Create Base instance
Base = declarative_base()

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def utc_now() -> datetime:
    """Current UTC time, timezone aware."""
    return datetime.now(timezone.utc)


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine; SQLite needs cross-thread access for async callers."""
    if database_url.startswith("sqlite:"):
        return create_engine(
            database_url, echo=echo, connect_args={"check_same_thread": False}
        )
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = create_db_engine(settings.database_url, echo=settings.db_echo)
        logger.info(f"Created database engine for dialect: {_engine.dialect.name}")
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(autoflush=False, bind=get_engine())
    return _session_factory

"""
db.py

Ticket store handle.

One TicketStore owns one SQLAlchemy engine and its session factory.
The process keeps exactly one of them, created lazily by get_store()
and released by close_store() (app shutdown) or store_scope() (CLI).
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from config import get_database_url
from errors import StorageUnavailable

logger = logging.getLogger(__name__)

# Base class for the models
Base = declarative_base()


def normalize_database_url(url: str) -> str:
    # Dokku Postgres and many Heroku style services use the older
    # 'postgres://' scheme. SQLAlchemy 2 prefers 'postgresql+psycopg2://'.
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg2://", 1)
    return url


class TicketStore:
    def __init__(self, url: str):
        self.url = normalize_database_url(url)

        engine_kwargs = {"pool_pre_ping": True, "future": True}
        if self.url.startswith("sqlite"):
            # In-memory SQLite must share one connection across threads
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if self.url in ("sqlite://", "sqlite:///:memory:"):
                engine_kwargs["poolclass"] = StaticPool

        self.engine = create_engine(self.url, **engine_kwargs)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        self._closed = False

    @contextmanager
    def session(self) -> Iterator[Session]:
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    def create_schema(self) -> None:
        """Create missing tables. Raises StorageUnavailable."""
        import models  # noqa: F401
        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Could not create ticket schema: {e}") from e

    def ping(self) -> None:
        """Cheap connectivity probe. Raises StorageUnavailable."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Ticket store unreachable: {e}") from e

    def close(self) -> None:
        if self._closed:
            return
        self.engine.dispose()
        self._closed = True
        logger.info("[db] store closed")

    @property
    def closed(self) -> bool:
        return self._closed


# =====================================================================
# SECTION: PROCESS-WIDE HANDLE
# =====================================================================

_STORE: Optional[TicketStore] = None
_STORE_LOCK = threading.Lock()


def get_store() -> TicketStore:
    global _STORE
    with _STORE_LOCK:
        if _STORE is None or _STORE.closed:
            _STORE = TicketStore(get_database_url())
            logger.info("[db] store opened dialect=%s", _STORE.engine.dialect.name)
        return _STORE


def close_store() -> None:
    global _STORE
    with _STORE_LOCK:
        if _STORE is not None:
            _STORE.close()
        _STORE = None


@contextmanager
def store_scope() -> Iterator[TicketStore]:
    """Acquire the process store and always release it on exit."""
    store = get_store()
    try:
        yield store
    finally:
        close_store()


def get_db() -> Iterator[Session]:
    """FastAPI dependency: one session per request from the process store."""
    with get_store().session() as db:
        yield db

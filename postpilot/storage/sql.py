"""
SQLite-backed transient store.

Lets the CLI (or any host without its own transient storage) keep cached
results and rate-limit windows between processes.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Optional, Union

from sqlalchemy import Column, Float, JSON, String, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .base import Clock, TransientStore

logger = logging.getLogger(__name__)

Base = declarative_base()


class TransientEntry(Base):
    """One stored value with an optional expiry timestamp."""
    __tablename__ = 'transients'

    key = Column(String(191), primary_key=True)
    value = Column(JSON, nullable=True)
    expires_at = Column(Float, nullable=True, index=True)

    def __repr__(self):
        return f"<TransientEntry(key='{self.key}', expires_at={self.expires_at})>"


class SQLStore(TransientStore):
    """TransientStore persisted through SQLAlchemy."""

    def __init__(self, url_or_path: Union[str, Path], clock: Optional[Clock] = None, echo: bool = False):
        """
        Args:
            url_or_path: SQLAlchemy URL, or a filesystem path for SQLite
            clock: Time source (seconds since the epoch)
            echo: If True, log all SQL statements (debug mode)
        """
        super().__init__(clock)
        url = str(url_or_path)
        if "://" not in url:
            path = Path(url).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            url = f"sqlite:///{path}"

        self.engine: Engine = create_engine(url, echo=echo)
        Base.metadata.create_all(self.engine)
        self._session_factory = sessionmaker(bind=self.engine)

    @contextmanager
    def session_scope(self):
        """Provide a transactional scope around a series of operations."""
        session: Session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _live(self, session: Session, key: str) -> Optional[TransientEntry]:
        entry = session.get(TransientEntry, key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self.clock():
            session.delete(entry)
            return None
        return entry

    def get(self, key: str) -> Optional[Any]:
        with self.session_scope() as session:
            entry = self._live(session, key)
            return entry.value if entry else None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        expires = self.clock() + ttl if ttl else None
        with self.session_scope() as session:
            session.merge(TransientEntry(key=key, value=value, expires_at=expires))

    def delete(self, key: str) -> None:
        with self.session_scope() as session:
            session.query(TransientEntry).filter_by(key=key).delete()

    def expires_at(self, key: str) -> Optional[float]:
        with self.session_scope() as session:
            entry = self._live(session, key)
            return entry.expires_at if entry else None

    def purge_expired(self) -> int:
        """Delete expired rows, returning how many were removed."""
        with self.session_scope() as session:
            removed = (
                session.query(TransientEntry)
                .filter(TransientEntry.expires_at.isnot(None))
                .filter(TransientEntry.expires_at <= self.clock())
                .delete(synchronize_session=False)
            )
        if removed:
            logger.debug(f"Purged {removed} expired entries")
        return removed

    def close(self) -> None:
        """Close database connection and cleanup."""
        self.engine.dispose()

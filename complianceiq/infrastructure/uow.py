from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.orm import Session, sessionmaker

from .logging import get_logger

logger = get_logger(__name__)


class UnitOfWork:
    """Commits on success and rolls back on any error, one session per block."""

    def __init__(self, SessionLocal: sessionmaker):
        self.SessionLocal = SessionLocal

    @contextmanager
    def begin(self) -> Iterator[Session]:
        s = self.SessionLocal()
        try:
            yield s
            s.commit()
        except Exception:
            logger.debug("Rolling back unit of work")
            s.rollback()
            raise
        finally:
            s.close()

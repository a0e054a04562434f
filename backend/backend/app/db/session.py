from __future__ import annotations
import logging
from contextlib import contextmanager
from typing import Generator, Iterator
from sqlalchemy import create_engine
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import sessionmaker, Session

from app.core.errors import TransactionFailure
from app.core.settings import DATABASE_URL

logger = logging.getLogger(__name__)

engine = create_engine(
    DATABASE_URL,
    future=True,
    pool_pre_ping=True,
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


class UnitOfWork:
    """Handle for one open write transaction.

    Only transaction() hands these out. Every function that mutates stock,
    orders or history takes a UnitOfWork instead of a Session, so a write
    cannot happen outside a commit-or-rollback scope.
    """

    __slots__ = ("session",)

    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def require(uow: "UnitOfWork") -> Session:
        if not isinstance(uow, UnitOfWork):
            raise TypeError(f"expected UnitOfWork, got {type(uow).__name__}")
        return uow.session


@contextmanager
def transaction(db: Session) -> Iterator[UnitOfWork]:
    """Commit on success, roll back everything on any exception.

    Store-level errors surface as TransactionFailure; lock and connection
    errors (OperationalError) are marked retryable.
    """
    try:
        yield UnitOfWork(db)
        db.commit()
    except DBAPIError as exc:
        db.rollback()
        retryable = isinstance(exc, OperationalError)
        logger.warning("transaction rolled back (retryable=%s): %s", retryable, exc.orig)
        raise TransactionFailure(f"Database transaction failed: {exc.orig}", retryable=retryable) from exc
    except BaseException:
        db.rollback()
        raise

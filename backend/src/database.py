"""Database session factory and configuration.

Provides database connectivity, session management and the SQLAlchemy
implementation of the customer unit of work.
"""

import logging
from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from config import get_settings
from domain.customers.ports import TransactionManagerPort

logger = logging.getLogger(__name__)

DATABASE_URL = get_settings().DATABASE_URL

# Pool settings only apply to non-SQLite databases
_engine_kwargs = {
    "pool_pre_ping": True,  # Verify connections before using
    "echo": False,
}

if DATABASE_URL.startswith("sqlite"):
    _engine_kwargs["connect_args"] = {"check_same_thread": False}
else:
    _engine_kwargs["pool_size"] = 5
    _engine_kwargs["max_overflow"] = 10

engine = create_engine(DATABASE_URL, **_engine_kwargs)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """Context manager for database sessions.

    Usage:
        with get_db_session() as session:
            SqlAlchemyIdempotencyRepository(session).cleanup()

    Automatically commits on success, rolls back on exception.
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db() -> Generator[Session, None, None]:
    """Dependency for FastAPI endpoints.

    Usage:
        @app.get("/customers")
        def list_customers(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


class SessionTransactionManager(TransactionManagerPort):
    """Unit of work over one SQLAlchemy session.

    Commits when the block exits cleanly; rolls back and re-raises otherwise.
    """

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        try:
            yield self.db
            self.db.commit()
        except Exception:
            logger.warning("Transaction rolled back")
            self.db.rollback()
            raise


def init_db() -> None:
    """Create any missing customer tables."""
    from models import Base

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured")

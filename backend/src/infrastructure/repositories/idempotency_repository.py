"""Idempotency repository backed by the customer_processed_events table"""

import logging
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import get_db_session
from models.customer_processed_event import CustomerProcessedEvent
from domain.customers.errors import IdempotencyKeyConflict
from domain.customers.events import utcnow
from domain.customers.ports import IdempotencyRepositoryPort

logger = logging.getLogger(__name__)


class SqlAlchemyIdempotencyRepository(IdempotencyRepositoryPort):
    """Stores processed idempotency keys with a time-to-live.

    A second store() of a live key violates the unique constraint on
    idempotency_key and raises IdempotencyKeyConflict. The session is then
    unusable until the caller's transaction rolls back.
    """

    def __init__(self, db: Session):
        self.db = db

    def exists(self, key: str) -> bool:
        return self._find_live(key) is not None

    def store(self, key: str, data: dict[str, Any], ttl_seconds: int = 3600) -> None:
        # An expired record with the same key is replaced
        expired = self.db.execute(
            select(CustomerProcessedEvent).where(
                CustomerProcessedEvent.idempotency_key == key,
                CustomerProcessedEvent.expires_at <= utcnow(),
            )
        ).scalar_one_or_none()
        if expired is not None:
            self.db.delete(expired)
            self.db.flush()

        now = utcnow()
        self.db.add(CustomerProcessedEvent(
            idempotency_key=key,
            event_type=data.get("event_type", "unknown"),
            payload=data,
            result=None,
            processed_at=now,
            expires_at=now + timedelta(seconds=ttl_seconds),
        ))
        try:
            self.db.flush()
        except IntegrityError as e:
            raise IdempotencyKeyConflict(key) from e

    def store_result(self, key: str, result: dict[str, Any]) -> None:
        record = self._find_live(key)
        if record is None:
            return
        record.result = result
        self.db.flush()

    def get(self, key: str) -> Optional[dict[str, Any]]:
        record = self._find_live(key)
        if record is None:
            return None

        return {
            "event_type": record.event_type,
            "payload": record.payload,
            "result": record.result,
            "processed_at": record.processed_at,
            "expires_at": record.expires_at,
        }

    def delete(self, key: str) -> bool:
        record = self.db.execute(
            select(CustomerProcessedEvent).where(CustomerProcessedEvent.idempotency_key == key)
        ).scalar_one_or_none()
        if record is None:
            return False

        self.db.delete(record)
        self.db.flush()
        return True

    def cleanup(self) -> int:
        expired = self.db.execute(
            select(CustomerProcessedEvent).where(CustomerProcessedEvent.expires_at <= utcnow())
        ).scalars().all()
        for record in expired:
            self.db.delete(record)
        self.db.flush()
        return len(expired)

    def _find_live(self, key: str) -> Optional[CustomerProcessedEvent]:
        return self.db.execute(
            select(CustomerProcessedEvent).where(
                CustomerProcessedEvent.idempotency_key == key,
                CustomerProcessedEvent.expires_at > utcnow(),
            )
        ).scalar_one_or_none()


def purge_expired_idempotency_keys() -> int:
    """Delete expired idempotency records in their own transaction.

    Safe to run repeatedly; a second run finds nothing to delete.
    """
    with get_db_session() as db:
        removed = SqlAlchemyIdempotencyRepository(db).cleanup()

    logger.info("Expired idempotency keys purged", extra={"removed": removed})
    return removed

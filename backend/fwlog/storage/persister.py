"""Record persister: the only component that talks to the Logs table."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..errors import ConnectivityError, PersistenceError, StoreError
from .models import Base, LogRecord
from .retry import execute_with_retry, is_transient_store_error

logger = logging.getLogger("fwlog.storage")


@dataclass
class PersistResult:
    ok: bool
    record: LogRecord
    record_id: Optional[int] = None
    error: Optional[StoreError] = None
    # True when the store was unreachable or busy; False when it rejected the row itself.
    retryable: bool = False


def _record_values(record: LogRecord) -> Dict[str, Any]:
    return {
        attr.key: getattr(record, attr.key)
        for attr in inspect(LogRecord).column_attrs
        if attr.key != "id"
    }


class RecordPersister:
    """Appends LogRecord rows and returns the store-generated identity.

    Owns the engine and session factory; nothing else in the process opens sessions
    against the Logs table. Failures come back as PersistResult values, never as
    exceptions, so one bad record cannot stop ingestion.
    """

    def __init__(
        self,
        engine: Engine,
        session_factory: sessionmaker,
        retry_attempts: int = 3,
        retry_base_sleep: float = 0.05,
    ) -> None:
        self.engine = engine
        self.session_factory = session_factory
        self.retry_attempts = retry_attempts
        self.retry_base_sleep = retry_base_sleep

    def check_connectivity(self) -> None:
        """Liveness check against the store. Raises ConnectivityError when unreachable."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            raise ConnectivityError(f"store unreachable: {exc}") from exc

    def _insert_once(self, values: Dict[str, Any]) -> int:
        self.check_connectivity()
        with self.session_factory() as session:
            try:
                row = LogRecord(**values)
                session.add(row)
                session.flush()
                new_id = row.id
                session.commit()
            except SQLAlchemyError:
                session.rollback()
                raise
        if new_id is None:
            raise PersistenceError("store returned no identity for inserted row")
        return int(new_id)

    def persist(self, record: LogRecord) -> PersistResult:
        values = _record_values(record)
        try:
            new_id = execute_with_retry(
                lambda: self._insert_once(values),
                max_attempts=self.retry_attempts,
                base_sleep=self.retry_base_sleep,
                log=logger,
            )
        except StoreError as exc:
            logger.warning("Failed to persist record from %s: %s", record.hostname, exc)
            return PersistResult(
                ok=False, record=record, error=exc, retryable=isinstance(exc, ConnectivityError)
            )
        except SQLAlchemyError as exc:
            logger.warning("Failed to persist record from %s: %s", record.hostname, exc)
            return PersistResult(
                ok=False,
                record=record,
                error=PersistenceError(str(exc)),
                retryable=is_transient_store_error(exc),
            )

        record.id = new_id
        logger.debug("Inserted id=%d rule=%s action=%s", new_id, record.fw_rule, record.action)
        return PersistResult(ok=True, record=record, record_id=new_id)

    def create_schema(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

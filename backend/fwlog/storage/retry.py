"""Retry helper for transient store errors (dropped connections, locked SQLite files)."""

from __future__ import annotations

import logging
import random
import time
from typing import Callable, TypeVar

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError

from ..errors import ConnectivityError

logger = logging.getLogger("fwlog.storage.retry")

T = TypeVar("T")


def is_transient_store_error(exc: BaseException) -> bool:
    """True if the exception is a connectivity or locking error worth retrying."""
    if isinstance(exc, (ConnectivityError, OperationalError, InterfaceError)):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    msg = str(exc).lower()
    return "database is locked" in msg or "busy" in msg


def execute_with_retry(
    fn: Callable[[], T],
    *,
    max_attempts: int = 3,
    base_sleep: float = 0.05,
    log: logging.Logger | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run fn(); on transient errors retry with exponential backoff and jitter.

    Non-transient errors propagate immediately. When every attempt fails the last
    transient error is re-raised so the caller can decide what to do with the work.
    """
    log = log or logger
    attempts = max(1, max_attempts)
    for attempt in range(attempts):
        try:
            return fn()
        except Exception as e:
            if not is_transient_store_error(e):
                raise
            if attempt == attempts - 1:
                log.warning(
                    "Transient DB error after %s attempts; giving up: %s",
                    attempts,
                    e,
                    exc_info=False,
                )
                raise
            sleep_time = base_sleep * (2**attempt) + random.random() * base_sleep
            log.debug(
                "Retrying after transient error (attempt %s/%s): %s; sleep %.3fs",
                attempt + 1,
                attempts,
                e,
                sleep_time,
            )
            sleep(sleep_time)
    raise AssertionError("unreachable")

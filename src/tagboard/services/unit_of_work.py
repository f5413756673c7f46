"""Transaction boundary for store operations.

One call of :func:`run_in_transaction` is one atomic unit: tag counts, post
membership, vector and flags commit together or not at all. Conflicts that
came from losing an optimistic-lock race are retried against fresh state a
bounded number of times; invariant violations are never retried.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from tagboard.core.errors import ConflictError, InvariantViolation
from tagboard.core.settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_in_transaction(
    db: Session,
    operation: Callable[[], T],
    *,
    attempts: int | None = None,
    backoff: float | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation`` and commit, rolling back on any failure.

    Args:
        db: Session the operation works in.
        operation: Zero-argument callable doing the reads and writes. It is
            called again from scratch on a retryable conflict, so it must
            re-read whatever state it depends on.
        attempts: Total tries for retryable conflicts (defaults to settings).
        backoff: Initial delay in seconds, doubled after every failed try.
        sleep: Injected for tests.

    Returns:
        Whatever ``operation`` returned on the committed attempt.

    Raises:
        ConflictError: When retries are exhausted or the conflict is not
            retryable.
        InvariantViolation: Immediately, after rollback and a critical log.
    """
    max_attempts = max(1, attempts if attempts is not None else settings.conflict_retry_attempts)
    delay = backoff if backoff is not None else settings.conflict_retry_backoff_seconds

    attempt = 1
    while True:
        try:
            result = operation()
            try:
                db.commit()
            except StaleDataError as err:
                raise ConflictError("row was modified concurrently") from err
            return result
        except ConflictError as exc:
            db.rollback()
            if not exc.retryable or attempt == max_attempts:
                logger.info("Giving up after %d attempt(s): %s", attempt, exc)
                raise
            logger.info("Conflict on attempt %d/%d, retrying: %s", attempt, max_attempts, exc)
            sleep(delay * 2 ** (attempt - 1))
            attempt += 1
        except InvariantViolation:
            db.rollback()
            logger.critical("Invariant violation; transaction aborted", exc_info=True)
            raise
        except Exception:
            db.rollback()
            raise

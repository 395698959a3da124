"""
Bounded retry around a unit of work.

Every attempt runs in a fresh transaction on the given session:

  1. run the unit of work (statements autobegin the transaction)
  2. commit
  3. on a transient failure roll back, back off briefly, and try again

Transient failures are optimistic-lock misses (raised by the unit of work as
TransientStoreError), driver-level OperationalError (lock timeouts,
serialization failures, dropped connections) and IntegrityError from the
unique seat index. A retried IntegrityError re-runs the availability checks
against the committed state, so the caller sees the proper domain error.

Domain errors roll back and propagate on the first attempt.
"""

import asyncio
import random
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.config import get_settings
from boxoffice.core.exceptions import TransientStoreError
from boxoffice.core.logging import get_logger
from boxoffice.core.metrics import record_retry

logger = get_logger(__name__)
settings = get_settings()

T = TypeVar("T")


async def run_in_transaction(
    db: AsyncSession,
    work: Callable[[], Awaitable[T]],
    *,
    operation: str,
    max_attempts: int | None = None,
) -> T:
    attempts = max_attempts or settings.RESERVATION_MAX_ATTEMPTS

    for attempt in range(1, attempts + 1):
        try:
            result = await work()
            await db.commit()
            return result
        except TransientStoreError as e:
            reason = e.message
        except (OperationalError, IntegrityError) as e:
            reason = type(e).__name__
        except BaseException:
            # domain errors and cancellation: nothing from this attempt survives
            await db.rollback()
            raise

        await db.rollback()
        record_retry(operation)
        logger.info(
            "transaction_retry",
            operation=operation,
            attempt=attempt,
            reason=reason,
        )
        if attempt < attempts:
            delay = settings.RESERVATION_RETRY_BASE_DELAY * (2 ** (attempt - 1))
            await asyncio.sleep(delay + random.uniform(0, delay))

    logger.warning("transaction_retries_exhausted", operation=operation, attempts=attempts)
    raise TransientStoreError(
        f"{operation} failed due to high demand. Please try again."
    )

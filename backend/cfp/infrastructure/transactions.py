"""Transaction Runner — commit-or-rollback with retry on serialization failures.

Invariants:
    - Each operation runs in exactly one transaction: commit on success, rollback on any failure
    - Serialization failure (40001) and deadlock (40P01): exponential backoff with jitter,
      at most RetryPolicy.max_attempts total attempts
    - CfpError raised by the operation: rollback and re-raise unchanged, no retry
    - IntegrityError maps to ConflictError (reason from the violated constraint)
    - Any other SQLAlchemy failure maps to StorageError

Design Decisions:
    - Operation is a callable over the session: a retry re-executes all reads, so decisions
      are never made on stale snapshots
    - ±25% jitter on backoff: concurrent losers of the same conflict do not retry in lockstep
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError

from cfp.config import get_settings
from cfp.core.repository_protocols import PersistenceStore
from cfp.core.errors import (
    CfpError, ConflictError, ErrorContext, StorageError,
    CONSTRAINT_VIOLATION, DUPLICATE_LABEL_NAME, SLOT_OVERLAP, TALK_ALREADY_SCHEDULED,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
S = TypeVar("S", bound=PersistenceStore)

RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})
EXCLUSION_VIOLATION = "23P01"

# Constraint name fragment -> conflict reason
_CONSTRAINT_REASONS = (
    ("uq_schedule_slots_talk_id", TALK_ALREADY_SCHEDULED),
    ("excl_schedule_slots_track_overlap", SLOT_OVERLAP),
    ("uq_labels_name", DUPLICATE_LABEL_NAME),
)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_ms: int = 50
    max_delay_ms: int = 1_000

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        settings = get_settings()
        return cls(
            max_attempts=max(1, settings.transaction_max_attempts),
            base_delay_ms=settings.transaction_base_delay_ms,
            max_delay_ms=settings.transaction_max_delay_ms,
        )

    def backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter (milliseconds)."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311


def sqlstate_of(exc: DBAPIError) -> str | None:
    """SQLSTATE of the driver error, if the driver exposes one."""
    orig = getattr(exc, "orig", None)
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        for attr in ("sqlstate", "pgcode"):
            code = getattr(candidate, attr, None)
            if isinstance(code, str):
                return code
    return None


def is_serialization_failure(exc: Exception) -> bool:
    return isinstance(exc, DBAPIError) and sqlstate_of(exc) in RETRYABLE_SQLSTATES


def conflict_reason(exc: IntegrityError) -> str:
    """Stable conflict reason for a storage constraint violation."""
    if sqlstate_of(exc) == EXCLUSION_VIOLATION:
        return SLOT_OVERLAP
    text = str(exc.orig)
    for fragment, reason in _CONSTRAINT_REASONS:
        if fragment in text:
            return reason
    # SQLite reports unique index violations by column, not index name
    if "schedule_slots.talk_id" in text:
        return TALK_ALREADY_SCHEDULED
    if "labels.name" in text:
        return DUPLICATE_LABEL_NAME
    return CONSTRAINT_VIOLATION


async def run_in_transaction(
    db: S,
    operation: Callable[[S], Awaitable[T]],
    *,
    policy: RetryPolicy | None = None,
    context: ErrorContext | None = None,
) -> T:
    """Run operation(db) and commit, retrying the whole unit on serialization failure."""
    policy = policy or RetryPolicy.from_settings()
    for attempt in range(policy.max_attempts):
        try:
            result = await operation(db)
            await db.commit()
            return result
        except CfpError:
            await db.rollback()
            raise
        except IntegrityError as e:
            await db.rollback()
            reason = conflict_reason(e)
            logger.warning(
                f"Constraint violation: {reason}",
                extra={"error_code": "CONFLICT", "attempt": attempt + 1},
            )
            raise ConflictError(
                "Operation conflicts with existing data", reason, context,
            ) from e
        except DBAPIError as e:
            await db.rollback()
            if not is_serialization_failure(e):
                logger.error(f"DB driver error: {e}", extra={"error_code": "STORAGE_ERROR"})
                raise StorageError("Database driver error", "query", context) from e
            if attempt + 1 >= policy.max_attempts:
                logger.error(
                    "Serialization failure, retries exhausted",
                    extra={"error_code": "STORAGE_ERROR", "attempt": attempt + 1},
                )
                raise StorageError(
                    "Transaction could not be serialized", "commit", context,
                ) from e
            delay = policy.backoff(attempt)
            logger.warning(
                f"Serialization failure, retry after {delay}ms",
                extra={"attempt": attempt + 1},
            )
            await asyncio.sleep(delay / 1000)
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"SQLAlchemy error: {e}", extra={"error_code": "STORAGE_ERROR"})
            raise StorageError("Database operation failed", "unknown", context) from e
    raise StorageError("Transaction could not be serialized", "commit", context)

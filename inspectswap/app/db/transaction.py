"""
Transaction primitive for ledger-affecting work.

Every unit of work that moves credits runs inside ``ledger_transaction``:
one commit on success, one rollback on any failure, and (for balance-checked
debits) a per-user lock so the balance read and the debit cannot interleave
with another request for the same user.

Locking:
- In-process ``asyncio.Lock`` per key. SQLite admits a single writer per
  database, so on SQLite every transaction shares one writer lock instead.
- On PostgreSQL each key is also taken as ``pg_advisory_xact_lock`` so the
  guard holds across worker processes; the lock is released by COMMIT/ROLLBACK.
"""

import asyncio
import functools
import logging
import weakref
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from inspectswap.app.core.exceptions import AppException, StorageError

logger = logging.getLogger("inspectswap.db")

T = TypeVar("T")

SQLITE_WRITER_KEY = "sqlite:writer"

_local_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


def credit_lock_key(user_id: str) -> str:
    """Lock key guarding balance-checked debits for one user."""
    return f"credits:{user_id}"


def bounty_lock_key(bounty_id: int) -> str:
    """Lock key guarding status transitions of one bounty."""
    return f"bounty:{bounty_id}"


def _local_lock(key: str) -> asyncio.Lock:
    lock = _local_locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _local_locks[key] = lock
    return lock


def _dialect_name(db: AsyncSession) -> str:
    return db.get_bind().dialect.name


@asynccontextmanager
async def ledger_transaction(db: AsyncSession, *lock_keys: str) -> AsyncIterator[AsyncSession]:
    """
    Run a block as a single atomic unit of work.

    Args:
        db: Session the block writes through
        *lock_keys: Keys to serialize on (see credit_lock_key / bounty_lock_key)

    Yields:
        The same session, for convenience

    Raises:
        AppException: Re-raised unchanged after rollback
        StorageError: Any SQLAlchemy failure, after rollback
    """
    dialect = _dialect_name(db)
    keys = sorted(set(lock_keys))
    local_keys = [SQLITE_WRITER_KEY] if dialect == "sqlite" else keys

    async with AsyncExitStack() as stack:
        for key in local_keys:
            await stack.enter_async_context(_local_lock(key))

        try:
            if dialect == "postgresql":
                for key in keys:
                    await db.execute(
                        text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
                        {"key": key},
                    )
            yield db
            await db.commit()
        except AppException:
            await db.rollback()
            raise
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("Transaction rolled back: %s: %s", type(exc).__name__, exc)
            raise StorageError(
                "Transaction failed and was rolled back",
                details={"reason": type(exc).__name__},
            ) from exc
        except BaseException:
            await db.rollback()
            raise


def storage_guard(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """Translate SQLAlchemy faults escaping a store operation into StorageError."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except SQLAlchemyError as exc:
            logger.error("%s failed: %s: %s", func.__qualname__, type(exc).__name__, exc)
            raise StorageError(
                f"{func.__qualname__} failed",
                details={"reason": type(exc).__name__},
            ) from exc

    return wrapper

"""
Database session context management.

Holds the session of the enclosing explicit transaction (if any) in a
ContextVar so repositories called inside `transaction()` share one session,
while standalone repository calls acquire and release their own.

Usage:
    # In repositories - auto-manages sessions
    async with get_session() as session:
        result = await session.execute(query)

    # Explicit transaction - multiple ops share one session
    async with transaction():
        await subscription_repo.append_payment(...)
        await charge_attempt_repo.create(...)  # Same session, commits together
"""

from contextvars import ContextVar, Token
from functools import wraps
from typing import Optional, Callable, TypeVar, ParamSpec

from sqlalchemy.ext.asyncio import AsyncSession

# Holds the current write session (if inside a transaction)
_write_session: ContextVar[Optional[AsyncSession]] = ContextVar(
    "db_write_session", default=None
)


def get_current_session() -> Optional[AsyncSession]:
    """Get the current session from context, if any."""
    return _write_session.get()


def set_current_session(session: AsyncSession) -> Token:
    """Set session in context. Returns a token for reset_current_session."""
    return _write_session.set(session)


def reset_current_session(token: Token) -> None:
    """Reset session context using token from set_current_session."""
    _write_session.reset(token)


def in_transaction() -> bool:
    """Check if we're currently inside a transaction."""
    return get_current_session() is not None


P = ParamSpec("P")
T = TypeVar("T")


def transactional(func: Callable[P, T]) -> Callable[P, T]:
    """
    Decorator that wraps function in an explicit transaction.

    All DB operations within the decorated function share one session/connection.
    The transaction commits on success, rolls back on exception.
    """

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        from common.db.scoped import transaction as tx  # noqa: PLC0415

        async with tx():
            return await func(*args, **kwargs)

    return wrapper

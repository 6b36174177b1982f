"""
Operation-scoped database sessions.

Provides lazy session acquisition that releases connections immediately
after each operation, so no connection is held while waiting on the
payment gateway.

Usage:
    # Single operation - acquires and releases immediately
    async with get_session() as session:
        result = await session.get(Model, id)
    # Connection released here

    # Multiple operations in a transaction - share one session
    async with transaction():
        await repo.save(thing1)
        await repo.save(thing2)
    # Commits together, then releases

See also:
    - common/db/context.py: ContextVar plumbing and @transactional
    - common/db/session.py: Engine and request-scoped sessions (get_db)
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from common.core.otel_axiom_exporter import get_logger
from common.db.session import AsyncSessionLocal
from common.db.context import (
    get_current_session,
    set_current_session,
    reset_current_session,
)

logger = get_logger(__name__)


@asynccontextmanager
async def transaction() -> AsyncGenerator[AsyncSession, None]:
    """
    Explicit transaction boundary.

    All DB operations inside share one session/connection.
    Commits on success, rolls back on exception. A nested transaction()
    joins the outer one.

    Raises:
        Exception: Re-raises any exception after rollback
    """
    existing = get_current_session()
    if existing is not None:
        yield existing
        return

    start = time.perf_counter()
    async with AsyncSessionLocal() as session:
        acquire_time = time.perf_counter() - start
        logger.debug(f"Transaction session acquire: {acquire_time * 1000:.2f}ms")

        token = set_current_session(session)
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.error(f"Transaction rollback due to: {e}")
            await session.rollback()
            raise
        finally:
            reset_current_session(token)


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Get a session for a single DB operation.

    Reuses the session if inside a transaction() block, otherwise acquires a
    new session, commits, and releases it immediately.
    """
    existing = get_current_session()

    if existing is not None:
        # Inside a transaction - the outer block commits
        yield existing
        return

    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.error(f"Operation rollback due to: {e}")
            await session.rollback()
            raise

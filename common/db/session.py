from uuid import uuid4

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy import pool
from common.core.config import settings
from common.core.otel_axiom_exporter import get_logger
from common.db.base import Base

logger = get_logger(__name__)

ASYNC_DATABASE_URL = settings.async_database_url

engine_kwargs = {"echo": settings.debug}

if ASYNC_DATABASE_URL.startswith("postgresql"):
    engine_kwargs.update(
        {
            "pool_pre_ping": True,
            "pool_recycle": 3600,
            "connect_args": {
                "prepared_statement_name_func": lambda: f"__asyncpg_{uuid4()}__",
            },
        }
    )

    # NullPool (db_use_nullpool=True): new connection per operation (workers)
    # Default pool: connection pooling (API servers with concurrent requests)
    if settings.db_use_nullpool:
        logger.info("Using NullPool - no connection pooling (worker mode)")
        engine_kwargs["poolclass"] = pool.NullPool
    else:
        logger.info(
            f"Using connection pooling - pool_size={settings.db_pool_size}, max_overflow={settings.db_pool_overflow}"
        )
        engine_kwargs["pool_size"] = settings.db_pool_size
        engine_kwargs["max_overflow"] = settings.db_pool_overflow

engine = create_async_engine(ASYNC_DATABASE_URL, **engine_kwargs)
AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def get_db():
    """Request-scoped session for FastAPI dependencies."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.error(f"Rolling back due to error {e}")
            await session.rollback()
            raise


def _import_entities() -> None:
    """Register every entity on Base.metadata."""
    import packages.users.models.database  # noqa: F401
    import packages.orders.models.database  # noqa: F401
    import packages.billing.models.database  # noqa: F401
    import packages.webhooks.models.database  # noqa: F401


async def init_db():
    """Create any missing tables."""
    _import_entities()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ensured")

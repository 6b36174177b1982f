"""Inline retry for store operations."""

from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from common.core.exceptions import PersistenceError
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


async def with_persistence_retry(
    operation: Callable[[], Awaitable[T]], description: str
) -> T:
    """
    Run a store operation, retrying it once on a database error.

    Args:
        operation: Zero-argument coroutine factory; called again for the retry
        description: Short label for logs

    Returns:
        Whatever the operation returns

    Raises:
        PersistenceError: If the retry fails as well
    """
    try:
        return await operation()
    except SQLAlchemyError as e:
        logger.warning(
            f"Store operation '{description}' failed, retrying once: {e}",
            extra={"operation": description},
        )

    try:
        return await operation()
    except SQLAlchemyError as e:
        logger.error(
            f"Store operation '{description}' failed after retry: {e}",
            extra={"operation": description},
        )
        raise PersistenceError(f"{description} failed: {e}") from e

from typing import List
from sqlalchemy import select, update

from common.core.clock import utc_now
from common.core.otel_axiom_exporter import trace_span
from common.repositories.base import BaseRepository
from packages.webhooks.models.database.notification import PendingNotificationEntity
from packages.webhooks.models.domain.records import PendingNotification


class PendingNotificationRepository(
    BaseRepository[PendingNotificationEntity, PendingNotification]
):
    """Manual-review store for notifications that matched no order."""

    def __init__(self):
        super().__init__(PendingNotificationEntity, PendingNotification)

    @trace_span
    async def mark_processed(self, pending_id: int, user_id: str) -> None:
        async with self._get_session() as session:
            await session.execute(
                update(PendingNotificationEntity)
                .where(PendingNotificationEntity.id == pending_id)
                .values(
                    processed=True,
                    processed_user_id=user_id,
                    processed_at=utc_now(),
                )
            )
            await session.flush()

    @trace_span
    async def get_unprocessed(self, limit: int = 100) -> List[PendingNotification]:
        async with self._get_session() as session:
            result = await session.execute(
                select(PendingNotificationEntity)
                .where(PendingNotificationEntity.processed == False)  # noqa
                .order_by(PendingNotificationEntity.received_at)
                .limit(limit)
            )
            return self._entities_to_domain(result.scalars().all())

from typing import Any, Dict, Optional
from sqlalchemy import select, func

from common.core.clock import utc_now
from common.core.otel_axiom_exporter import trace_span
from common.db.insert import insert_if_absent
from common.repositories.base import BaseRepository
from packages.webhooks.models.database.notification import (
    ProcessedNotificationEntity,
)
from packages.webhooks.models.domain.records import ProcessedNotification


class ProcessedNotificationRepository(
    BaseRepository[ProcessedNotificationEntity, ProcessedNotification]
):
    """Event store for the notification idempotency gate."""

    def __init__(self):
        super().__init__(ProcessedNotificationEntity, ProcessedNotification)

    @trace_span
    async def claim(
        self, key: str, payment_id: str, status: str, payload: Dict[str, Any]
    ) -> bool:
        """
        Atomically record a notification key.

        Returns:
            True if this caller created the record, False if it already existed
        """
        async with self._get_session() as session:
            return await insert_if_absent(
                session,
                ProcessedNotificationEntity,
                {
                    "key": key,
                    "payment_id": payment_id,
                    "status": status,
                    "processed_at": utc_now(),
                    "payload": payload,
                },
                index_elements=["key"],
            )

    @trace_span
    async def get_by_key(self, key: str) -> Optional[ProcessedNotification]:
        async with self._get_session() as session:
            result = await session.execute(
                select(ProcessedNotificationEntity).where(
                    ProcessedNotificationEntity.key == key
                )
            )
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def count_for_payment(self, payment_id: str) -> int:
        async with self._get_session() as session:
            result = await session.execute(
                select(func.count())
                .select_from(ProcessedNotificationEntity)
                .where(ProcessedNotificationEntity.payment_id == payment_id)
            )
            return result.scalar_one()

from typing import List
from sqlalchemy import select

from common.repositories.base import BaseRepository
from packages.billing.models.database.subscription import ChargeAttemptEntity
from packages.billing.models.domain.charge import ChargeAttempt
from common.core.otel_axiom_exporter import trace_span


class ChargeAttemptRepository(BaseRepository[ChargeAttemptEntity, ChargeAttempt]):
    """Write-once log of gateway charge attempts."""

    def __init__(self):
        super().__init__(ChargeAttemptEntity, ChargeAttempt)

    @trace_span
    async def get_by_subscription(self, subscription_id: str) -> List[ChargeAttempt]:
        async with self._get_session() as session:
            result = await session.execute(
                select(ChargeAttemptEntity)
                .where(ChargeAttemptEntity.subscription_id == subscription_id)
                .order_by(ChargeAttemptEntity.finished_at)
            )
            return self._entities_to_domain(result.scalars().all())

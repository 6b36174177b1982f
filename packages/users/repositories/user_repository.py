from typing import Optional
from sqlalchemy import select, func

from common.repositories.base import BaseRepository
from packages.users.models.database.user import UserEntity
from packages.users.models.domain.user import User
from common.core.otel_axiom_exporter import trace_span


class UserRepository(BaseRepository[UserEntity, User]):
    def __init__(self):
        super().__init__(UserEntity, User)

    @trace_span
    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email, case-insensitively."""
        async with self._get_session() as session:
            result = await session.execute(
                select(UserEntity)
                .where(func.lower(UserEntity.email) == email.strip().lower())
                .limit(1)
            )
            db_user = result.scalar_one_or_none()
            return self._entity_to_domain(db_user) if db_user else None

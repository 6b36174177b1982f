from sqlalchemy import Column, String, DateTime

from common.core.clock import utc_now
from common.db.base import Base


class UserEntity(Base):
    __tablename__ = "users"

    # Account ids are issued by the identity provider
    id = Column(String, primary_key=True, index=True)
    email = Column(String, nullable=True, unique=True, index=True)
    display_name = Column(String, nullable=True)
    created_at = Column(DateTime(), nullable=False, default=utc_now)

"""Database models for users."""

from packages.users.models.database.user import UserEntity

__all__ = ["UserEntity"]

"""Unit tests for operation-scoped sessions against the test database."""

import pytest
from sqlalchemy import text

from common.db.context import get_current_session, in_transaction
from common.db.scoped import get_session, transaction
from packages.users.models.database.user import UserEntity


@pytest.mark.asyncio
class TestTransaction:
    """Test the transaction() context manager."""

    async def test_transaction_commits_on_success(self, test_db):
        async with transaction() as session:
            session.add(UserEntity(id="tx-user", email="tx@example.com"))

        result = await test_db.execute(text("SELECT email FROM users WHERE id = 'tx-user'"))
        assert result.scalar() == "tx@example.com"

    async def test_transaction_rollback_on_exception(self, test_db):
        with pytest.raises(ValueError):
            async with transaction() as session:
                session.add(UserEntity(id="rolled-back"))
                await session.flush()
                raise ValueError("boom")

        result = await test_db.execute(text("SELECT id FROM users WHERE id = 'rolled-back'"))
        assert result.fetchone() is None

    async def test_nested_transaction_reuses_session(self):
        async with transaction() as outer:
            assert in_transaction()
            async with transaction() as inner:
                assert inner is outer
            async with get_session() as lazy:
                assert lazy is outer

    async def test_context_is_reset_after_transaction(self):
        async with transaction():
            pass
        assert get_current_session() is None
        assert not in_transaction()


@pytest.mark.asyncio
class TestGetSession:
    async def test_get_session_commits(self, test_db):
        async with get_session() as session:
            session.add(UserEntity(id="lazy-user"))

        result = await test_db.execute(text("SELECT id FROM users WHERE id = 'lazy-user'"))
        assert result.scalar() == "lazy-user"

    async def test_get_session_outside_transaction_is_not_shared(self):
        async with get_session() as first:
            pass
        async with get_session() as second:
            assert second is not first

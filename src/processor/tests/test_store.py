"""
Tests for ledger store error translation.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from core.db.models import LongCompResult
from core.errors import DuplicateRecordError, StoreUnavailableError
from processor.store import LedgerStore, is_unique_violation


class UniqueViolation(Exception):
    sqlstate = "23505"


class NotNullViolation(Exception):
    sqlstate = "23502"


class TestLedgerStore:
    @pytest.mark.asyncio
    async def test_unique_collision_is_duplicate(self, store, reader):
        await reader.add_result(1, 10, 100)

        with pytest.raises(DuplicateRecordError):
            await reader.add_result(1, 10, 100)

        assert await reader.count(LongCompResult) == 1

    @pytest.mark.asyncio
    async def test_not_null_violation_is_not_duplicate(self, store, reader):
        """Only unique collisions may be acknowledged as already applied."""
        with pytest.raises(StoreUnavailableError) as exc_info:
            async with store.transaction() as ledger:
                await ledger.create_result(
                    round_id=1, challenge_id=10, coder_id=100, attended=None
                )

        assert not isinstance(exc_info.value, DuplicateRecordError)
        assert await reader.count(LongCompResult) == 0

    @pytest.mark.asyncio
    async def test_pool_timeout_is_store_unavailable(self, store, tmp_path):
        """An exhausted connection pool surfaces as StoreUnavailableError."""
        single = LedgerStore.from_url(
            f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
            pool_size=1,
            max_overflow=0,
            pool_timeout=0.1,
        )
        try:
            async with single.transaction() as ledger:
                await ledger.get_round_id(10)

                with pytest.raises(StoreUnavailableError):
                    async with single.transaction() as other:
                        await other.get_round_id(10)
        finally:
            await single.dispose()


class TestIsUniqueViolation:
    def test_postgres_sqlstate(self):
        assert is_unique_violation(IntegrityError("INSERT", {}, UniqueViolation()))
        assert not is_unique_violation(
            IntegrityError("INSERT", {}, NotNullViolation())
        )

    def test_wrapped_driver_error(self):
        """The driver error may sit behind the adapter's own exception."""
        wrapper = Exception("duplicate key value violates unique constraint")
        wrapper.__cause__ = UniqueViolation()

        assert is_unique_violation(IntegrityError("INSERT", {}, wrapper))

    def test_sqlite_message(self):
        orig = Exception("UNIQUE constraint failed: id_sequences.name")
        assert is_unique_violation(IntegrityError("INSERT", {}, orig))

        orig = Exception("NOT NULL constraint failed: long_comp_result.attended")
        assert not is_unique_violation(IntegrityError("INSERT", {}, orig))

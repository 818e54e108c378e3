"""
Shared fixtures for the ledger processor tests.

Every test gets its own SQLite file database built from the SQLModel metadata,
so transactions run on separate connections the way they do against
PostgreSQL.
"""

from datetime import datetime
from typing import Dict, Optional

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from core.constants import RoundType, YesNo
from core.db.models import LongComponentState, LongCompResult, Round, RoundComponent
from core.errors import SubmissionLookupError
from core.messages import SubmissionDetails
from processor.allocator import IdentifierAllocator
from processor.constants import DEFAULT_ID_SEQ_COMPONENT_STATE
from processor.seed import seed_ledger
from processor.service import EventProcessor
from processor.store import LedgerStore


class FakeSubmissionClient:
    """In-memory stand-in for the submission API."""

    def __init__(self):
        self.submissions: Dict[str, SubmissionDetails] = {}
        self.calls = []

    def add(
        self,
        submission_id: str,
        *,
        member_id: Optional[int] = None,
        challenge_id: Optional[int] = None,
        legacy_submission_id: Optional[int] = None,
        created: Optional[str] = None,
    ) -> SubmissionDetails:
        details = SubmissionDetails.model_validate(
            {
                "id": submission_id,
                "memberId": member_id,
                "challengeId": challenge_id,
                "legacySubmissionId": legacy_submission_id,
                "created": created,
            }
        )
        self.submissions[submission_id] = details
        return details

    async def get_submission(self, submission_id: str) -> SubmissionDetails:
        self.calls.append(submission_id)
        if submission_id not in self.submissions:
            raise SubmissionLookupError(
                f"Submission with id: {submission_id} doesn't exist", status_code=404
            )
        return self.submissions[submission_id]


class LedgerReader:
    """Read helpers for assertions, each in its own transaction."""

    def __init__(self, store: LedgerStore):
        self.store = store

    async def state(self, round_id: int, coder_id: int) -> Optional[LongComponentState]:
        async with self.store.transaction() as ledger:
            return await ledger.get_component_state(round_id, coder_id)

    async def result(
        self, round_id: int, challenge_id: int, coder_id: int
    ) -> Optional[LongCompResult]:
        async with self.store.transaction() as ledger:
            return await ledger.get_result(round_id, challenge_id, coder_id)

    async def history(self, state_id: int):
        async with self.store.transaction() as ledger:
            return await ledger.list_submission_history(state_id)

    async def count(self, model) -> int:
        async with self.store.transaction() as ledger:
            result = await ledger.session.execute(select(func.count()).select_from(model))
            return result.scalar_one()

    async def sequence(self, name: str):
        async with self.store.transaction() as ledger:
            return await ledger.get_sequence(name)

    async def add_round(
        self,
        challenge_id: int,
        round_id: int,
        *,
        component_id: int = 9001,
        type_id: int = RoundType.MARATHON_MATCH,
        rated_ind: int = 1,
    ) -> None:
        async with self.store.transaction() as ledger:
            ledger.session.add(
                Round(
                    id=round_id,
                    challenge_id=challenge_id,
                    name=f"Round {round_id}",
                    type_id=type_id,
                    rated_ind=rated_ind,
                    create_date=datetime(2024, 1, 1),
                )
            )
            ledger.session.add(
                RoundComponent(
                    round_id=round_id, component_id=component_id, division_id=1
                )
            )

    async def add_result(
        self,
        round_id: int,
        challenge_id: int,
        coder_id: int,
        *,
        attended: str = YesNo.YES,
        system_point_total: Optional[float] = None,
        placed: int = 0,
    ) -> None:
        async with self.store.transaction() as ledger:
            await ledger.create_result(
                round_id=round_id,
                challenge_id=challenge_id,
                coder_id=coder_id,
                attended=attended,
                placed=placed,
                rated_ind=1,
                advanced=YesNo.NO,
                system_point_total=system_point_total,
            )


@pytest_asyncio.fixture
async def store(tmp_path):
    """Empty ledger with every table created."""
    ledger_store = LedgerStore.from_url(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    await ledger_store.create_all()
    yield ledger_store
    await ledger_store.dispose()


@pytest_asyncio.fixture
async def allocator_store(store, tmp_path):
    """Second engine on the same ledger, reserved for block refills."""
    refill_store = LedgerStore.from_url(
        f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}", pool_size=1, max_overflow=0
    )
    yield refill_store
    await refill_store.dispose()


@pytest_asyncio.fixture
async def seeded_store(store):
    """Ledger loaded with the development fixture data."""
    await seed_ledger(store)
    return store


@pytest.fixture
def reader(store):
    return LedgerReader(store)


@pytest.fixture
def submissions():
    return FakeSubmissionClient()


@pytest.fixture
def allocator(allocator_store):
    return IdentifierAllocator(allocator_store, DEFAULT_ID_SEQ_COMPONENT_STATE)


@pytest.fixture
def processor(store, allocator, submissions):
    return EventProcessor(
        store,
        allocator,
        submissions,
        ignored_review_type_ids=["ignored-type"],
    )

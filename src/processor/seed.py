"""
Fixture data for local development and tests.

Seeding is idempotent: rows that already exist are left as they are.
"""

from datetime import datetime, timezone
from typing import Dict, List

from sqlmodel import SQLModel

from core.constants import ComponentStatus, RatingType, RoundType, YesNo
from core.db.models import (
    AlgoRating,
    Challenge,
    Component,
    IdSequence,
    LongComponentState,
    LongCompResult,
    Round,
    RoundComponent,
    Submission,
)
from core.log import get_logger

from .constants import DEFAULT_ID_SEQ_COMPONENT_STATE
from .store import LedgerStore

logger = get_logger(__name__)

SEED_CHALLENGE_ID = 30054163
SEED_ROUND_ID = 2001
SEED_COMPONENT_ID = 2001
SEED_DIVISION_ID = 100
SEED_CODER_IDS = [27244033, 27244044, 27244053, 27244064]
SEED_SEQUENCE_START = 100001

_CREATED = datetime(2018, 12, 1, 12, 0, tzinfo=timezone.utc)
_SUBMITTED = datetime(2018, 2, 16, tzinfo=timezone.utc)


def _primary_key(row: SQLModel) -> Dict[str, object]:
    return {column.name: getattr(row, column.name) for column in row.__table__.primary_key}


def seed_rows() -> List[SQLModel]:
    rows: List[SQLModel] = [
        Challenge(
            id=SEED_CHALLENGE_ID,
            legacy_id=SEED_CHALLENGE_ID,
            name="Test Marathon Match Challenge",
            status_id=1,
            category_id=37,
            create_date=_CREATED,
        ),
        Round(
            id=SEED_ROUND_ID,
            challenge_id=SEED_CHALLENGE_ID,
            name="Test Round 2001",
            type_id=RoundType.MARATHON_MATCH,
            rated_ind=0,
            create_date=_CREATED,
        ),
        Component(
            id=SEED_COMPONENT_ID,
            problem_id=SEED_COMPONENT_ID,
            result_type_id=1,
            method_name="test method",
            class_name="test class",
        ),
        RoundComponent(
            round_id=SEED_ROUND_ID,
            component_id=SEED_COMPONENT_ID,
            division_id=SEED_DIVISION_ID,
        ),
    ]

    for index, coder_id in enumerate(SEED_CODER_IDS):
        rows.append(
            AlgoRating(
                coder_id=coder_id,
                rating_type_id=RatingType.MARATHON_MATCH,
                rating=1200 + index * 100,
                vol=100 + index * 10,
            )
        )

    rows += [
        Submission(
            id="14a1b211-283b-4f9a-809f-71e200646560",
            challenge_id=SEED_CHALLENGE_ID,
            member_id=27244033,
            legacy_submission_id=2001,
            created=_SUBMITTED,
            initial_score=90.12,
        ),
        Submission(
            id="14a1b211-283b-4f9a-809f-71e200646561",
            challenge_id=SEED_CHALLENGE_ID,
            member_id=27244044,
            legacy_submission_id=2002,
            created=_SUBMITTED,
            initial_score=85.5,
        ),
        # Registered, nothing submitted yet
        LongComponentState(
            id=1,
            round_id=SEED_ROUND_ID,
            challenge_id=SEED_CHALLENGE_ID,
            coder_id=27244044,
            component_id=SEED_COMPONENT_ID,
            status_id=ComponentStatus.PASSED_SYSTEM_TEST,
            submission_number=0,
            example_submission_number=0,
        ),
        LongCompResult(
            coder_id=27244044,
            round_id=SEED_ROUND_ID,
            challenge_id=SEED_CHALLENGE_ID,
            attended=YesNo.NO,
            placed=0,
            rated_ind=0,
            advanced=YesNo.NO,
        ),
        # Two submissions and an aggregate score
        LongComponentState(
            id=2,
            round_id=SEED_ROUND_ID,
            challenge_id=SEED_CHALLENGE_ID,
            coder_id=27244053,
            component_id=SEED_COMPONENT_ID,
            status_id=ComponentStatus.PASSED_SYSTEM_TEST,
            submission_number=2,
            example_submission_number=0,
            points=98,
        ),
        LongCompResult(
            coder_id=27244053,
            round_id=SEED_ROUND_ID,
            challenge_id=SEED_CHALLENGE_ID,
            attended=YesNo.YES,
            placed=0,
            rated_ind=0,
            advanced=YesNo.NO,
            system_point_total=99,
        ),
        IdSequence(
            name=DEFAULT_ID_SEQ_COMPONENT_STATE,
            next_block_start=SEED_SEQUENCE_START,
            block_size=100,
        ),
    ]
    return rows


async def seed_ledger(store: LedgerStore) -> int:
    """Insert the fixture rows that are missing; returns how many were added."""
    added = 0
    async with store.transaction() as ledger:
        session = ledger.session
        for row in seed_rows():
            existing = await session.get(type(row), _primary_key(row))
            if existing is None:
                session.add(row)
                added += 1
    logger.info("Seeded %d ledger rows", added)
    return added

"""
Ledger store: the transactional boundary every state transition runs inside.

``LedgerStore.transaction()`` opens one database transaction and yields a
``LedgerSession`` exposing the reads and writes the processor needs. Leaving
the block normally commits; any exception rolls everything back. Driver
errors are translated into the ledger error taxonomy so callers never have to
inspect SQLAlchemy exceptions:

* unique key collisions -> ``DuplicateRecordError``
* any other driver, constraint or pool failure -> ``StoreUnavailableError``
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel import SQLModel

from core.constants import RatingType, RoundType, YesNo
from core.db.models import (
    AlgoRating,
    IdSequence,
    LongComponentState,
    LongCompResult,
    LongSubmission,
    Round,
    RoundComponent,
    Submission,
)
from core.errors import (
    DuplicateRecordError,
    LedgerError,
    PreconditionError,
    StoreUnavailableError,
)
from core.log import get_logger

logger = get_logger(__name__)

UNIQUE_VIOLATION_SQLSTATE = "23505"
SQLITE_UNIQUE_VIOLATION = "UNIQUE constraint failed"


def is_unique_violation(exc: IntegrityError) -> bool:
    """True when the driver reports a unique or primary key collision."""
    orig = exc.orig
    # asyncpg errors reach us wrapped by the SQLAlchemy adapter
    for error in (orig, getattr(orig, "__cause__", None)):
        if getattr(error, "sqlstate", None) == UNIQUE_VIOLATION_SQLSTATE:
            return True
    return SQLITE_UNIQUE_VIOLATION in str(orig)


@dataclass(frozen=True)
class ResultStanding:
    """Ranking input for one contestant."""

    coder_id: int
    attended: str
    system_point_total: Optional[float]
    placed: int

    @property
    def point(self) -> float:
        if self.attended == YesNo.NO or self.system_point_total is None:
            return 0
        return self.system_point_total


class LedgerSession:
    """Operations available inside one ledger transaction."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _insert(self, row: SQLModel) -> None:
        self.session.add(row)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            if not is_unique_violation(exc):
                raise
            table = row.__tablename__
            raise DuplicateRecordError(
                f"Duplicate {table} row: {exc.orig}", table=table
            ) from exc

    # Rounds

    async def get_round_id(self, challenge_id: int) -> Optional[int]:
        """Return the Marathon Match round of a challenge, if any.

        A challenge is expected to own at most one such round; when the
        upstream data violates that, the lowest round id wins.
        """
        result = await self.session.execute(
            select(Round.id)
            .where(
                Round.challenge_id == challenge_id,
                Round.type_id == RoundType.MARATHON_MATCH,
            )
            .order_by(Round.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_component_id(self, round_id: int) -> int:
        result = await self.session.execute(
            select(RoundComponent.component_id)
            .where(RoundComponent.round_id == round_id)
            .order_by(RoundComponent.component_id)
            .limit(1)
        )
        component_id = result.scalar_one_or_none()
        if component_id is None:
            raise PreconditionError(f"No component configured for round {round_id}")
        return component_id

    async def get_rated_ind(self, round_id: int) -> int:
        result = await self.session.execute(
            select(Round.rated_ind).where(Round.id == round_id)
        )
        rated_ind = result.scalar_one_or_none()
        if rated_ind is None:
            raise PreconditionError(f"Round {round_id} has no rated indicator")
        return rated_ind

    # Component state

    async def create_component_state(self, **fields: Any) -> LongComponentState:
        state = LongComponentState(**fields)
        await self._insert(state)
        return state

    async def get_component_state(
        self, round_id: int, coder_id: int, *, for_update: bool = False
    ) -> Optional[LongComponentState]:
        stmt = select(LongComponentState).where(
            LongComponentState.round_id == round_id,
            LongComponentState.coder_id == coder_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_component_state_by_id(
        self, state_id: int
    ) -> Optional[LongComponentState]:
        return await self.session.get(LongComponentState, state_id)

    async def update_component_state(self, state_id: int, **fields: Any) -> None:
        result = await self.session.execute(
            update(LongComponentState)
            .where(LongComponentState.id == state_id)
            .values(**fields)
        )
        if result.rowcount == 0:
            raise PreconditionError(f"Component state {state_id} does not exist")

    # Results

    async def create_result(self, **fields: Any) -> LongCompResult:
        row = LongCompResult(**fields)
        await self._insert(row)
        return row

    async def get_result(
        self, round_id: int, challenge_id: int, coder_id: int
    ) -> Optional[LongCompResult]:
        return await self.session.get(
            LongCompResult,
            {"coder_id": coder_id, "round_id": round_id, "challenge_id": challenge_id},
        )

    async def update_result(
        self, round_id: int, challenge_id: int, coder_id: int, **fields: Any
    ) -> None:
        result = await self.session.execute(
            update(LongCompResult)
            .where(
                LongCompResult.round_id == round_id,
                LongCompResult.challenge_id == challenge_id,
                LongCompResult.coder_id == coder_id,
            )
            .values(**fields)
        )
        if result.rowcount == 0:
            raise PreconditionError(
                f"No result row for coder {coder_id} in round {round_id}"
            )

    async def list_round_results(self, round_id: int) -> List[ResultStanding]:
        result = await self.session.execute(
            select(
                LongCompResult.coder_id,
                LongCompResult.attended,
                LongCompResult.system_point_total,
                LongCompResult.placed,
            )
            .where(LongCompResult.round_id == round_id)
            .order_by(LongCompResult.coder_id)
        )
        return [ResultStanding(*row) for row in result.all()]

    # Submissions

    async def create_submission_history(self, **fields: Any) -> LongSubmission:
        row = LongSubmission(**fields)
        await self._insert(row)
        return row

    async def list_submission_history(self, state_id: int) -> List[LongSubmission]:
        result = await self.session.execute(
            select(LongSubmission)
            .where(LongSubmission.long_component_state_id == state_id)
            .order_by(LongSubmission.submission_number)
        )
        return list(result.scalars().all())

    async def get_initial_score(self, legacy_submission_id: int) -> Optional[float]:
        """Initial score of a submission; None when the submission is unknown."""
        result = await self.session.execute(
            select(Submission.id, Submission.initial_score).where(
                Submission.legacy_submission_id == legacy_submission_id
            )
        )
        row = result.one_or_none()
        if row is None:
            return None
        return row.initial_score or 0

    # Ratings

    async def get_rating(
        self, coder_id: int, rating_type_id: int = RatingType.MARATHON_MATCH
    ) -> Optional[AlgoRating]:
        return await self.session.get(
            AlgoRating, {"coder_id": coder_id, "rating_type_id": rating_type_id}
        )

    # Identifier sequences

    async def get_sequence(self, name: str) -> Optional[IdSequence]:
        """Read a sequence row, holding its write lock until the transaction ends."""
        result = await self.session.execute(
            select(IdSequence).where(IdSequence.name == name).with_for_update()
        )
        return result.scalar_one_or_none()

    async def create_sequence(
        self, name: str, next_block_start: int, block_size: int
    ) -> IdSequence:
        sequence = IdSequence(
            name=name, next_block_start=next_block_start, block_size=block_size
        )
        await self._insert(sequence)
        return sequence

    async def set_sequence_start(self, name: str, next_block_start: int) -> None:
        await self.session.execute(
            update(IdSequence)
            .where(IdSequence.name == name)
            .values(next_block_start=next_block_start)
        )


class LedgerStore:
    """Owns the engine and hands out transactional ledger sessions."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_factory = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )

    @classmethod
    def from_url(cls, database_url: str, **engine_kwargs: Any) -> "LedgerStore":
        engine = create_async_engine(database_url, **engine_kwargs)
        return cls(engine)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[LedgerSession]:
        """Run a unit of work atomically.

        Ledger errors raised inside the block pass through untouched after the
        rollback; raw driver errors are translated.
        """
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    yield LedgerSession(session)
        except LedgerError:
            raise
        except IntegrityError as exc:
            if is_unique_violation(exc):
                raise DuplicateRecordError(
                    f"Unique constraint violated: {exc.orig}"
                ) from exc
            logger.error("Ledger constraint violated: %s", exc)
            raise StoreUnavailableError(f"Ledger constraint violated: {exc.orig}") from exc
        except DBAPIError as exc:
            logger.error("Ledger store operation failed: %s", exc)
            raise StoreUnavailableError(f"Ledger store unavailable: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            # Pool timeouts and other failures raised before reaching the driver
            logger.error("Ledger store operation failed: %s", exc)
            raise StoreUnavailableError(f"Ledger store unavailable: {exc}") from exc
        except OSError as exc:
            logger.error("Ledger store connection failed: %s", exc)
            raise StoreUnavailableError(f"Ledger store unavailable: {exc}") from exc

    async def create_all(self) -> None:
        """Create every ledger table that does not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

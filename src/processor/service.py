"""
State transitions applied to the ledger for each inbound event.

Each handler validates its payload, then runs the whole transition inside one
``LedgerStore`` transaction. A handler either returns ``None`` (the event was
applied or deliberately ignored) or raises; a raised error always leaves the
ledger exactly as it was.
"""

from datetime import datetime
from enum import StrEnum
from typing import Iterable, Optional, Protocol
from zoneinfo import ZoneInfo

from core.constants import (
    DEFAULT_LANGUAGE_ID,
    PHASE_STATE_END,
    REVIEW_PHASE_NAME,
    SUBMISSION_TIME_ZONE,
    ComponentStatus,
    YesNo,
)
from core.db.models import LongComponentState, LongCompResult
from core.errors import PreconditionError
from core.log import get_logger
from core.messages import (
    RegistrationPayload,
    ReviewEndPayload,
    ReviewPayload,
    ReviewSummationPayload,
    SubmissionDetails,
)

from .allocator import IdentifierAllocator
from .decorators import log_handler, validate_payload
from .ranking import rank_results
from .ratings import LedgerRatingSource, RatingSource
from .store import LedgerStore

logger = get_logger(__name__)


class ContestantStage(StrEnum):
    """Where a contestant is in a round, derived from their ledger rows."""

    UNREGISTERED = "unregistered"
    REGISTERED = "registered"
    SUBMITTING = "submitting"
    SCORED = "scored"
    PLACED = "placed"


def stage_of(
    state: Optional[LongComponentState], result: Optional[LongCompResult]
) -> ContestantStage:
    if state is None and result is None:
        return ContestantStage.UNREGISTERED
    if result is not None and result.placed > 0:
        return ContestantStage.PLACED
    if result is not None and result.attended == YesNo.YES:
        return ContestantStage.SCORED
    if state is not None and state.submission_number > 0:
        return ContestantStage.SUBMITTING
    return ContestantStage.REGISTERED


def normalize_submit_time(created: datetime) -> int:
    """Epoch seconds of a submission timestamp.

    Timestamps carrying no UTC offset are read as America/New_York wall time.
    """
    if created.tzinfo is None:
        created = created.replace(tzinfo=ZoneInfo(SUBMISSION_TIME_ZONE))
    return int(created.timestamp())


class SubmissionLookup(Protocol):
    async def get_submission(self, submission_id: str) -> SubmissionDetails: ...


class EventProcessor:
    """Applies registration, review, aggregate score and phase end events."""

    def __init__(
        self,
        store: LedgerStore,
        allocator: IdentifierAllocator,
        submission_client: SubmissionLookup,
        rating_source: Optional[RatingSource] = None,
        ignored_review_type_ids: Iterable[str] = (),
        replace_existing_placements: bool = True,
    ):
        self.store = store
        self.allocator = allocator
        self.submission_client = submission_client
        self.rating_source = rating_source or LedgerRatingSource()
        self.ignored_review_type_ids = frozenset(
            str(type_id) for type_id in ignored_review_type_ids
        )
        self.replace_existing_placements = replace_existing_placements

    @log_handler
    @validate_payload(RegistrationPayload)
    async def process_registration(self, payload: RegistrationPayload) -> None:
        """Create the component state and result rows for a new contestant.

        There is no existence check: registering the same contestant twice
        raises ``DuplicateRecordError`` from the unique keys and writes nothing.
        """
        challenge_id = payload.data.challenge_id
        user_id = payload.data.user_id

        async with self.store.transaction() as ledger:
            round_id = await ledger.get_round_id(challenge_id)
            if round_id is None:
                logger.info(
                    "No Marathon Match round for challenge %s, ignoring registration of %s",
                    challenge_id,
                    user_id,
                )
                return

            state_id = await self.allocator.next_id()
            component_id = await ledger.get_component_id(round_id)
            await ledger.create_component_state(
                id=state_id,
                round_id=round_id,
                challenge_id=challenge_id,
                coder_id=user_id,
                component_id=component_id,
                status_id=ComponentStatus.PASSED_SYSTEM_TEST,
                submission_number=0,
                example_submission_number=0,
                points=0,
            )

            rated_ind = await ledger.get_rated_ind(round_id)
            await ledger.create_result(
                round_id=round_id,
                challenge_id=challenge_id,
                coder_id=user_id,
                attended=YesNo.NO,
                placed=0,
                rated_ind=rated_ind,
                advanced=YesNo.NO,
            )

        logger.info(
            "Registered coder %s in round %s (component state %s)",
            user_id,
            round_id,
            state_id,
        )

    @log_handler
    @validate_payload(ReviewPayload)
    async def process_review(self, payload: ReviewPayload) -> None:
        """Record one review score as the contestant's next submission."""
        if payload.type_id in self.ignored_review_type_ids:
            logger.info(
                "Ignoring review of submission %s with review type %s",
                payload.submission_id,
                payload.type_id,
            )
            return

        submission = await self.submission_client.get_submission(payload.submission_id)
        if submission.created is None:
            raise PreconditionError(
                f"Submission {payload.submission_id} has no creation time"
            )
        if submission.member_id is None:
            raise PreconditionError(f"Submission {payload.submission_id} has no member")
        if submission.challenge_id is None:
            raise PreconditionError(
                f"Submission {payload.submission_id} has no challenge"
            )
        submit_time = normalize_submit_time(submission.created)

        async with self.store.transaction() as ledger:
            round_id = await ledger.get_round_id(submission.challenge_id)
            if round_id is None:
                logger.info(
                    "No Marathon Match round for challenge %s, ignoring review of %s",
                    submission.challenge_id,
                    payload.submission_id,
                )
                return

            # Row lock serializes concurrent reviews of the same contestant
            state = await ledger.get_component_state(
                round_id, submission.member_id, for_update=True
            )
            if state is None:
                result = await ledger.get_result(
                    round_id, submission.challenge_id, submission.member_id
                )
                raise PreconditionError(
                    f"Coder {submission.member_id} is {stage_of(state, result)} "
                    f"in round {round_id} but has no component state for a review"
                )

            submission_number = state.submission_number + 1
            await ledger.create_submission_history(
                long_component_state_id=state.id,
                submission_number=submission_number,
                example=0,
                round_id=round_id,
                open_time=submit_time,
                submit_time=submit_time,
                submission_points=payload.score,
                language_id=DEFAULT_LANGUAGE_ID,
            )
            await ledger.update_component_state(
                state.id, points=payload.score, submission_number=submission_number
            )

        logger.info(
            "Recorded submission %s of coder %s in round %s with score %s",
            submission_number,
            submission.member_id,
            round_id,
            payload.score,
        )

    @log_handler
    @validate_payload(ReviewSummationPayload)
    async def process_review_summation(self, payload: ReviewSummationPayload) -> None:
        """Store the aggregate score and mark the contestant as attended."""
        submission = await self.submission_client.get_submission(payload.submission_id)
        if submission.legacy_submission_id is None:
            raise PreconditionError(
                f"Submission {payload.submission_id} has no legacy submission id"
            )
        if submission.member_id is None:
            raise PreconditionError(f"Submission {payload.submission_id} has no member")
        if submission.challenge_id is None:
            raise PreconditionError(
                f"Submission {payload.submission_id} has no challenge"
            )

        async with self.store.transaction() as ledger:
            round_id = await ledger.get_round_id(submission.challenge_id)
            if round_id is None:
                logger.info(
                    "No Marathon Match round for challenge %s, ignoring aggregate score of %s",
                    submission.challenge_id,
                    payload.submission_id,
                )
                return

            initial_score = await ledger.get_initial_score(
                submission.legacy_submission_id
            )
            if initial_score is None:
                raise PreconditionError(
                    f"No submission with legacy id {submission.legacy_submission_id}"
                )

            result = await ledger.get_result(
                round_id, submission.challenge_id, submission.member_id
            )
            if result is None:
                state = await ledger.get_component_state(
                    round_id, submission.member_id
                )
                raise PreconditionError(
                    f"Coder {submission.member_id} is {stage_of(state, result)} "
                    f"in round {round_id} but has no result row for an aggregate score"
                )
            await ledger.update_result(
                round_id,
                submission.challenge_id,
                submission.member_id,
                system_point_total=payload.aggregate_score,
                point_total=initial_score,
                attended=YesNo.YES,
            )

        logger.info(
            "Stored aggregate score %s for coder %s in round %s",
            payload.aggregate_score,
            submission.member_id,
            round_id,
        )

    @log_handler
    @validate_payload(ReviewEndPayload)
    async def process_review_end(self, payload: ReviewEndPayload) -> None:
        """Place every contestant of the round once its review phase ends."""
        if (
            payload.phase_type_name != REVIEW_PHASE_NAME
            or payload.state != PHASE_STATE_END
        ):
            logger.info(
                "Ignoring phase %r in state %r for challenge %s",
                payload.phase_type_name,
                payload.state,
                payload.project_id,
            )
            return

        challenge_id = payload.project_id
        async with self.store.transaction() as ledger:
            round_id = await ledger.get_round_id(challenge_id)
            if round_id is None:
                logger.info(
                    "No Marathon Match round for challenge %s, ignoring review end",
                    challenge_id,
                )
                return

            standings = await ledger.list_round_results(round_id)
            already_placed = {
                standing.coder_id for standing in standings if standing.placed > 0
            }

            placements = rank_results(standings)
            updated = 0
            for placement in placements:
                if (
                    not self.replace_existing_placements
                    and placement.coder_id in already_placed
                ):
                    logger.debug(
                        "Keeping existing placement of coder %s", placement.coder_id
                    )
                    continue

                rating = await self.rating_source.get_rating(ledger, placement.coder_id)
                await ledger.update_result(
                    round_id,
                    challenge_id,
                    placement.coder_id,
                    placed=placement.placed,
                    old_rating=rating.rating,
                    old_vol=rating.vol,
                )
                updated += 1

        logger.info(
            "Placed %d of %d contestants in round %s", updated, len(placements), round_id
        )

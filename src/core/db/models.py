"""
SQLModel tables for the Marathon Match ledger.

The table and column names follow the legacy ledger so the processor can run
against an existing database without a data migration.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Column, Float, Integer, UniqueConstraint
from sqlalchemy import String as SAString
from sqlmodel import Field, SQLModel

from core.constants import (
    DEFAULT_LANGUAGE_ID,
    DEFAULT_SEQUENCE_BLOCK_SIZE,
    ComponentStatus,
    YesNo,
)


class Challenge(SQLModel, table=True):
    """Challenge known to the ledger; rounds hang off it."""

    __tablename__ = "challenge"

    id: int = Field(sa_column=Column(BigInteger, primary_key=True, autoincrement=False))
    legacy_id: Optional[int] = Field(default=None, sa_column=Column(BigInteger))
    name: str = Field(max_length=256, nullable=False)
    status_id: int = Field(default=1, nullable=False)
    category_id: Optional[int] = Field(default=None)
    create_date: Optional[datetime] = Field(default=None)


class Round(SQLModel, table=True):
    """Scored contest instance tied to a challenge."""

    __tablename__ = "round"

    id: int = Field(sa_column=Column(BigInteger, primary_key=True, autoincrement=False))
    challenge_id: int = Field(
        sa_column=Column(BigInteger, nullable=False, index=True)
    )
    name: Optional[str] = Field(default=None, max_length=256)
    type_id: int = Field(nullable=False, index=True)
    rated_ind: int = Field(default=0, nullable=False)
    create_date: Optional[datetime] = Field(default=None)


class Component(SQLModel, table=True):
    __tablename__ = "component"

    id: int = Field(sa_column=Column(BigInteger, primary_key=True, autoincrement=False))
    problem_id: int = Field(nullable=False)
    result_type_id: int = Field(nullable=False)
    method_name: Optional[str] = Field(default=None, max_length=256)
    class_name: Optional[str] = Field(default=None, max_length=256)


class RoundComponent(SQLModel, table=True):
    __tablename__ = "round_component"

    round_id: int = Field(
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False)
    )
    component_id: int = Field(
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False)
    )
    division_id: int = Field(
        sa_column=Column(Integer, primary_key=True, autoincrement=False)
    )


class LongComponentState(SQLModel, table=True):
    """Per-contestant progress record for a round."""

    __tablename__ = "long_component_state"
    __table_args__ = (
        UniqueConstraint("round_id", "coder_id", name="uq_long_component_state_round_coder"),
    )

    # Allocated by the identifier allocator, never by the database
    id: int = Field(sa_column=Column(BigInteger, primary_key=True, autoincrement=False))
    round_id: int = Field(sa_column=Column(BigInteger, nullable=False, index=True))
    challenge_id: int = Field(sa_column=Column(BigInteger, nullable=False))
    coder_id: int = Field(sa_column=Column(BigInteger, nullable=False, index=True))
    component_id: int = Field(sa_column=Column(BigInteger, nullable=False))
    status_id: int = Field(default=ComponentStatus.PASSED_SYSTEM_TEST, nullable=False)
    submission_number: int = Field(default=0, nullable=False)
    example_submission_number: int = Field(default=0, nullable=False)
    points: Optional[float] = Field(default=None, sa_column=Column(Float))


class LongCompResult(SQLModel, table=True):
    """Per-contestant standing record for a round."""

    __tablename__ = "long_comp_result"

    coder_id: int = Field(
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False)
    )
    round_id: int = Field(
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False)
    )
    challenge_id: int = Field(
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False)
    )
    attended: str = Field(
        default=YesNo.NO, sa_column=Column(SAString(1), nullable=False)
    )
    placed: int = Field(default=0, nullable=False)
    rated_ind: int = Field(default=0, nullable=False)
    advanced: str = Field(
        default=YesNo.NO, sa_column=Column(SAString(1), nullable=False)
    )
    system_point_total: Optional[float] = Field(default=None, sa_column=Column(Float))
    point_total: Optional[float] = Field(default=None, sa_column=Column(Float))
    old_rating: Optional[int] = Field(default=None)
    old_vol: Optional[int] = Field(default=None)


class LongSubmission(SQLModel, table=True):
    """Append-only history of accepted reviews."""

    __tablename__ = "long_submission"

    long_component_state_id: int = Field(
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False)
    )
    submission_number: int = Field(
        sa_column=Column(Integer, primary_key=True, autoincrement=False)
    )
    example: int = Field(
        default=0, sa_column=Column(Integer, primary_key=True, autoincrement=False)
    )
    round_id: int = Field(sa_column=Column(BigInteger, nullable=False, index=True))
    open_time: int = Field(sa_column=Column(BigInteger, nullable=False))
    submit_time: int = Field(sa_column=Column(BigInteger, nullable=False))
    submission_points: float = Field(sa_column=Column(Float, nullable=False))
    language_id: int = Field(default=DEFAULT_LANGUAGE_ID, nullable=False)


class Submission(SQLModel, table=True):
    """Submission mirror holding the initial (provisional) score."""

    __tablename__ = "submission"

    id: str = Field(primary_key=True, max_length=64)
    challenge_id: int = Field(sa_column=Column(BigInteger, nullable=False))
    member_id: int = Field(sa_column=Column(BigInteger, nullable=False))
    legacy_submission_id: int = Field(
        sa_column=Column(BigInteger, nullable=False, unique=True, index=True)
    )
    created: Optional[datetime] = Field(default=None)
    initial_score: Optional[float] = Field(default=None, sa_column=Column(Float))


class AlgoRating(SQLModel, table=True):
    __tablename__ = "algo_rating"

    coder_id: int = Field(
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False)
    )
    rating_type_id: int = Field(
        sa_column=Column(Integer, primary_key=True, autoincrement=False)
    )
    rating: int = Field(nullable=False)
    vol: int = Field(nullable=False)


class IdSequence(SQLModel, table=True):
    """Durable watermark for block-allocated identifiers."""

    __tablename__ = "id_sequences"

    name: str = Field(primary_key=True, max_length=128)
    next_block_start: int = Field(sa_column=Column(BigInteger, nullable=False))
    block_size: int = Field(default=DEFAULT_SEQUENCE_BLOCK_SIZE, nullable=False)

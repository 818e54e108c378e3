"""Initial ledger schema

Revision ID: 001
Revises:
Create Date: 2025-01-01 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "challenge",
        sa.Column("id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("legacy_id", sa.BigInteger(), nullable=True),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("status_id", sa.Integer(), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=True),
        sa.Column("create_date", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "round",
        sa.Column("id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("challenge_id", sa.BigInteger(), nullable=False),
        sa.Column("name", sa.String(length=256), nullable=True),
        sa.Column("type_id", sa.Integer(), nullable=False),
        sa.Column("rated_ind", sa.Integer(), nullable=False),
        sa.Column("create_date", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_round_challenge_id", "round", ["challenge_id"])
    op.create_index("ix_round_type_id", "round", ["type_id"])

    op.create_table(
        "component",
        sa.Column("id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("problem_id", sa.Integer(), nullable=False),
        sa.Column("result_type_id", sa.Integer(), nullable=False),
        sa.Column("method_name", sa.String(length=256), nullable=True),
        sa.Column("class_name", sa.String(length=256), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "round_component",
        sa.Column("round_id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("component_id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("division_id", sa.Integer(), autoincrement=False, nullable=False),
        sa.PrimaryKeyConstraint("round_id", "component_id", "division_id"),
    )

    op.create_table(
        "long_component_state",
        sa.Column("id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("round_id", sa.BigInteger(), nullable=False),
        sa.Column("challenge_id", sa.BigInteger(), nullable=False),
        sa.Column("coder_id", sa.BigInteger(), nullable=False),
        sa.Column("component_id", sa.BigInteger(), nullable=False),
        sa.Column("status_id", sa.Integer(), nullable=False),
        sa.Column("submission_number", sa.Integer(), nullable=False),
        sa.Column("example_submission_number", sa.Integer(), nullable=False),
        sa.Column("points", sa.Float(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "round_id", "coder_id", name="uq_long_component_state_round_coder"
        ),
    )
    op.create_index(
        "ix_long_component_state_round_id", "long_component_state", ["round_id"]
    )
    op.create_index(
        "ix_long_component_state_coder_id", "long_component_state", ["coder_id"]
    )

    op.create_table(
        "long_comp_result",
        sa.Column("coder_id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("round_id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("challenge_id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("attended", sa.String(length=1), nullable=False),
        sa.Column("placed", sa.Integer(), nullable=False),
        sa.Column("rated_ind", sa.Integer(), nullable=False),
        sa.Column("advanced", sa.String(length=1), nullable=False),
        sa.Column("system_point_total", sa.Float(), nullable=True),
        sa.Column("point_total", sa.Float(), nullable=True),
        sa.Column("old_rating", sa.Integer(), nullable=True),
        sa.Column("old_vol", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("coder_id", "round_id", "challenge_id"),
    )

    op.create_table(
        "long_submission",
        sa.Column(
            "long_component_state_id",
            sa.BigInteger(),
            autoincrement=False,
            nullable=False,
        ),
        sa.Column("submission_number", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("example", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("round_id", sa.BigInteger(), nullable=False),
        sa.Column("open_time", sa.BigInteger(), nullable=False),
        sa.Column("submit_time", sa.BigInteger(), nullable=False),
        sa.Column("submission_points", sa.Float(), nullable=False),
        sa.Column("language_id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint(
            "long_component_state_id", "submission_number", "example"
        ),
    )
    op.create_index("ix_long_submission_round_id", "long_submission", ["round_id"])

    op.create_table(
        "submission",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("challenge_id", sa.BigInteger(), nullable=False),
        sa.Column("member_id", sa.BigInteger(), nullable=False),
        sa.Column("legacy_submission_id", sa.BigInteger(), nullable=False),
        sa.Column("created", sa.DateTime(), nullable=True),
        sa.Column("initial_score", sa.Float(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_submission_legacy_submission_id",
        "submission",
        ["legacy_submission_id"],
        unique=True,
    )

    op.create_table(
        "algo_rating",
        sa.Column("coder_id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("rating_type_id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("vol", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("coder_id", "rating_type_id"),
    )

    op.create_table(
        "id_sequences",
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("next_block_start", sa.BigInteger(), nullable=False),
        sa.Column("block_size", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("name"),
    )


def downgrade() -> None:
    op.drop_table("id_sequences")
    op.drop_table("algo_rating")
    op.drop_index("ix_submission_legacy_submission_id", table_name="submission")
    op.drop_table("submission")
    op.drop_index("ix_long_submission_round_id", table_name="long_submission")
    op.drop_table("long_submission")
    op.drop_table("long_comp_result")
    op.drop_index(
        "ix_long_component_state_coder_id", table_name="long_component_state"
    )
    op.drop_index(
        "ix_long_component_state_round_id", table_name="long_component_state"
    )
    op.drop_table("long_component_state")
    op.drop_table("round_component")
    op.drop_table("component")
    op.drop_index("ix_round_type_id", table_name="round")
    op.drop_index("ix_round_challenge_id", table_name="round")
    op.drop_table("round")
    op.drop_table("challenge")

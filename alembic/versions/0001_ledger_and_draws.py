"""ledger, draw coordination and audit tables

Revision ID: 0001_ledger_and_draws
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_ledger_and_draws"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID_TYPE = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "entry_rounds",
        sa.Column("round_id", sa.String(length=100), nullable=False),
        sa.Column("batch_count", sa.Integer(), nullable=False),
        sa.Column("entry_count", sa.BigInteger(), nullable=False),
        sa.Column("locked", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("batch_count >= 0", name="batch_count_non_negative"),
        sa.CheckConstraint("entry_count >= 0", name="entry_count_non_negative"),
        sa.PrimaryKeyConstraint("round_id", name="entry_rounds_pkey"),
    )

    op.create_table(
        "draws",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("round_id", sa.String(length=100), nullable=False),
        sa.Column("request_id", sa.String(length=100), nullable=False),
        sa.Column("pick_count", sa.Integer(), nullable=False),
        sa.Column("max_range", sa.Integer(), nullable=False),
        sa.Column("active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("fulfilled", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("random_word", sa.String(length=78), nullable=True),
        sa.Column("winning_numbers", sa.JSON(), nullable=False),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("fulfilled_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("NOT (active AND fulfilled)", name="active_xor_fulfilled"),
        sa.PrimaryKeyConstraint("id", name="draws_pkey"),
        sa.UniqueConstraint("round_id", name="draws_round_id_key"),
    )
    op.create_index("ix_draws_request_id", "draws", ["request_id"], unique=False)

    op.create_table(
        "randomness_requests",
        sa.Column("request_id", sa.String(length=100), nullable=False),
        sa.Column("round_id", sa.String(length=100), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("request_id", name="randomness_requests_pkey"),
    )
    op.create_index(
        "ix_randomness_requests_round_id",
        "randomness_requests",
        ["round_id"],
        unique=False,
    )

    op.create_table(
        "game_formats",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("pick_count", sa.Integer(), nullable=False),
        sa.Column("max_range", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("pick_count BETWEEN 1 AND 9", name="pick_count_range"),
        sa.CheckConstraint(
            "max_range >= pick_count AND max_range <= 99", name="max_range_range"
        ),
        sa.PrimaryKeyConstraint("id", name="game_formats_pkey"),
    )

    op.create_table(
        "randomness_configs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("key_hash", sa.String(length=66), nullable=False),
        sa.Column("subscription_id", sa.String(length=100), nullable=False),
        sa.Column("callback_gas_limit", sa.Integer(), nullable=False),
        sa.Column("request_confirmations", sa.Integer(), nullable=False),
        sa.Column(
            "native_payment", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="randomness_configs_pkey"),
    )

    op.create_table(
        "control_state",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("operator", sa.String(length=100), nullable=False),
        sa.Column("pending_operator", sa.String(length=100), nullable=True),
        sa.Column("paused", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="control_state_pkey"),
    )

    op.create_table(
        "audit_events",
        sa.Column("sequence", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("event_type", sa.String(length=50), nullable=False),
        sa.Column("round_id", sa.String(length=100), nullable=True),
        sa.Column("request_id", sa.String(length=100), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("sequence", name="audit_events_pkey"),
    )
    op.create_index(
        "ix_audit_events_round_sequence",
        "audit_events",
        ["round_id", "sequence"],
        unique=False,
    )
    op.create_index(
        "ix_audit_events_event_type", "audit_events", ["event_type"], unique=False
    )


def downgrade() -> None:
    op.drop_index("ix_audit_events_event_type", table_name="audit_events")
    op.drop_index("ix_audit_events_round_sequence", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_table("control_state")
    op.drop_table("randomness_configs")
    op.drop_table("game_formats")
    op.drop_index("ix_randomness_requests_round_id", table_name="randomness_requests")
    op.drop_table("randomness_requests")
    op.drop_index("ix_draws_request_id", table_name="draws")
    op.drop_table("draws")
    op.drop_table("entry_rounds")

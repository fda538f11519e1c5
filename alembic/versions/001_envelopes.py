"""Initial schema — envelopes and shares.

Revision ID: 001_envelopes
Revises: None
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_envelopes"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "envelopes",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("token", sa.String(64), nullable=False),
        sa.Column("owner_id", sa.BigInteger, nullable=False),
        sa.Column("room_id", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("claim_expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("audit_expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_envelopes_token", "envelopes", ["token"], unique=True)

    op.create_table(
        "shares",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "envelope_id", sa.Integer,
            sa.ForeignKey("envelopes.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("amount", sa.BigInteger, nullable=False),
        sa.Column("claimant_id", sa.BigInteger, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="WITHDRAW_STANDBY"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("modified_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("envelope_id", "claimant_id", name="uq_share_envelope_claimant"),
    )
    op.create_index("ix_shares_envelope_id", "shares", ["envelope_id"])
    op.create_index("ix_shares_claimant_id", "shares", ["claimant_id"])


def downgrade() -> None:
    op.drop_index("ix_shares_claimant_id", table_name="shares")
    op.drop_index("ix_shares_envelope_id", table_name="shares")
    op.drop_table("shares")
    op.drop_index("ix_envelopes_token", table_name="envelopes")
    op.drop_table("envelopes")

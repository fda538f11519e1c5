"""Share ORM — one slot of money inside an envelope (deposit record or claimable share).

Invariants:
    - Always belongs to an Envelope (envelope_id FK)
    - status transitions: WITHDRAW_STANDBY -> WITHDRAW_COMPLETED, once
    - DEPOSIT_COMPLETED rows are written at create time and never touched again
    - (envelope_id, claimant_id) is unique: a user holds at most one share per
      envelope; NULL claimants (standby rows) do not collide

Design Decisions:
    - Integer autoincrement id: ascending in creation order, so "lowest id" is
      "earliest created" for standby selection
    - Unique constraint backs the duplicate-claim rule across processes
"""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, String, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lucky_money.core.domain_types import ShareStatus
from lucky_money.db.base import Base


class Share(Base):
    """Share entity — deposit record or one claimable portion of an envelope."""
    __tablename__ = "shares"
    __table_args__ = (
        UniqueConstraint("envelope_id", "claimant_id", name="uq_share_envelope_claimant"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    envelope_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("envelopes.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    claimant_id: Mapped[int | None] = mapped_column(
        BigInteger, nullable=True, index=True,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ShareStatus.WITHDRAW_STANDBY.value,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    modified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    envelope: Mapped["Envelope"] = relationship(
        "Envelope", back_populates="shares",
    )

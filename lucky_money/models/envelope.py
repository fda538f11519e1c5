"""Envelope ORM — persists the aggregate root of a lucky money envelope.

Invariants:
    - token is unique and immutable; it is the public lookup key
    - owner_id, room_id and both deadlines never change after insert
    - claim_expires_at < audit_expires_at

Design Decisions:
    - Integer surrogate id: shares reference it, the token stays opaque
    - cascade delete for shares: shares never outlive their envelope
"""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, String, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lucky_money.db.base import Base


class Envelope(Base):
    """Envelope aggregate root — owns its deposit and standby shares."""
    __tablename__ = "envelopes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    token: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, index=True,
    )
    owner_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    room_id: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    claim_expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    audit_expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )

    # Relationships
    shares: Mapped[list["Share"]] = relationship(
        "Share", back_populates="envelope",
        cascade="all, delete-orphan", order_by="Share.id",
    )

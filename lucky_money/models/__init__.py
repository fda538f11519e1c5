"""ORM Models — SQLAlchemy declarative models for envelopes and their shares.

Invariants:
    - All models inherit from Base (db/base.py)
    - Envelope is the aggregate root; every Share is scoped by envelope_id

Design Decisions:
    - One file per entity for locality
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs
"""

from lucky_money.models.envelope import Envelope  # noqa: F401
from lucky_money.models.share import Share  # noqa: F401

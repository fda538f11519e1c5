"""Infrastructure Layer — database sessions, clock, token generation, logging.

Invariants:
    - Infrastructure never imports from core/ domain logic except errors
    - Every SQLAlchemy failure is mapped to DatabaseError before leaving this layer
"""

"""Services Layer — envelope lifecycle, claim engine, audit aggregator, SQL repository.

Invariants:
    - Services orchestrate IO around the pure core checks
    - Violations returned by core/ are raised here as LuckyMoneyError subclasses
"""

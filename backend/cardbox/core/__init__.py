"""Core Layer — card model, lifecycle rules, pickup codes, box frames. No IO, no async.

Invariants:
    - No module in core/ imports from services/, api/ or infrastructure/
    - Functions are pure; randomness is injected (rng parameter)
"""

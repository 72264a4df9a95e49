"""API Layer — FastAPI routes, error handlers and the staff gate.

Invariants:
    - Routes registered explicitly in main.py (no auto-discovery)
    - Routes delegate to services; no lifecycle rules live here
"""

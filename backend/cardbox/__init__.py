"""Cardbox — lost-and-found coordination service for campus ID cards.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""

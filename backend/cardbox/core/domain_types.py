"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - CardId wraps the card's UUID string — never pass bare str ids in domain logic
    - All valid states encoded as Enums — no raw string matching
    - CardStatus order is the lifecycle order (see lifecycle_rules.STATUS_ORDER)

Design Decisions:
    - str Enums: serialize to JSON without custom encoders
    - Wire values keep the snake_case names the web UI and box firmware already send
"""

from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

CardId = NewType("CardId", str)


# ─── Enums ───────────────────────────────────────────────────────

class CardStatus(str, Enum):
    """Card lifecycle states. Transitions only move forward."""
    AWAITING_RESOLUTION = "awaiting_resolution"
    NOTIFIED = "notified"
    PICKED_UP = "picked_up"


class CardSource(str, Enum):
    """Where the found card was reported from. Set at creation."""
    WEB = "web"
    BOX = "box"


class PickupOrigin(str, Enum):
    """Who submitted a pickup code — the retrieval app or the box keypad."""
    APP = "app"
    BOX = "box"


class PickupRejection(str, Enum):
    """Negative pickup outcomes. Values, not errors."""
    INVALID_CODE = "invalid_code"
    ALREADY_PICKED_UP = "already_picked_up"

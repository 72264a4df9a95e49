"""Card Lifecycle Rules — pure decisions for the awaiting → notified → picked_up machine.

Invariants:
    - Every function here is PURE: it returns a decision (outcome + CardUpdate),
      the shell applies it under the store lock
    - Status never regresses; PICKED_UP is terminal
    - Pickup is valid from any non-terminal status (box may hold a code the owner
      got from staff before any email went out)
    - A manual identifier always wins over an OCR-extracted one
    - Negative pickup outcomes are values (PickupOutcome), never exceptions

Design Decisions:
    - evaluate_pickup receives `now` instead of reading the clock: deterministic tests
"""

import re
from dataclasses import dataclass
from datetime import datetime

from cardbox.core.card import Card, CardUpdate
from cardbox.core.domain_types import (
    CardStatus, PickupOrigin, PickupRejection,
)
from cardbox.core.errors import CardStateConflictError, ValidationFailedError


STATUS_ORDER: tuple[CardStatus, ...] = (
    CardStatus.AWAITING_RESOLUTION,
    CardStatus.NOTIFIED,
    CardStatus.PICKED_UP,
)

_WHITESPACE = re.compile(r"\s+")


# ─── Transitions ─────────────────────────────────────────────────

def can_transition(current: CardStatus, target: CardStatus) -> bool:
    """True iff target is strictly later in the lifecycle than current."""
    return STATUS_ORDER.index(target) > STATUS_ORDER.index(current)


def is_consistent(card: Card) -> bool:
    """picked_up_at is set iff the card is picked up; box cards carry a code."""
    stamped = card.picked_up_at is not None
    if stamped != (card.status == CardStatus.PICKED_UP):
        return False
    return card.box_id is None or card.pickup_code is not None


# ─── Intake ──────────────────────────────────────────────────────

def normalize_identifier(value: str | None) -> str | None:
    """Strip all whitespace; blank → None."""
    if value is None:
        return None
    cleaned = _WHITESPACE.sub("", str(value))
    return cleaned or None


def choose_identifier(manual: str | None, extracted: str | None) -> str | None:
    """Manual entry overrides OCR, never the reverse."""
    return normalize_identifier(manual) or normalize_identifier(extracted)


def clean_optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def extraction_update(
    card: Card, identifier: str | None, owner_name: str | None,
) -> CardUpdate:
    """Identifier/name learned at intake. The identifier freezes once notified."""
    if card.status != CardStatus.AWAITING_RESOLUTION:
        identifier = None
    return CardUpdate(
        identifier=identifier,
        owner_name=owner_name if card.owner_name is None else None,
    )


def resolution_update(
    card: Card, email: str, owner_name: str | None, notified: bool,
) -> CardUpdate:
    """Fields written after an automatic resolution attempt on the current card.

    The resolved email is kept even when sending failed so staff can see it,
    but never replaces an email already on the card (e.g. set by staff while
    the notification was in flight).
    """
    promote = notified and can_transition(card.status, CardStatus.NOTIFIED)
    return CardUpdate(
        owner_email=email if card.owner_email is None else None,
        owner_name=owner_name if card.owner_name is None else None,
        status=CardStatus.NOTIFIED if promote else None,
    )


# ─── Manual email assignment ─────────────────────────────────────

def validate_email(email: str | None) -> str:
    """Minimal check the staff UI relies on: non-blank and contains '@'."""
    cleaned = (email or "").strip()
    if not cleaned or "@" not in cleaned:
        raise ValidationFailedError("Valid email address is required", "email")
    return cleaned


def check_manual_assignment(card: Card) -> None:
    """Staff may assign an email only while the card awaits resolution."""
    if card.status != CardStatus.AWAITING_RESOLUTION:
        raise CardStateConflictError(card.id, card.status.value)


# ─── Pickup ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class PickupOutcome:
    """Result of a pickup request. ok=False carries a PickupRejection reason."""
    ok: bool
    reason: PickupRejection | None = None
    card_id: str | None = None
    message: str | None = None

    def to_wire(self) -> dict:
        body: dict = {"ok": self.ok}
        if self.reason is not None:
            body["reason"] = self.reason.value
        if self.card_id is not None:
            body["cardId"] = self.card_id
        if self.message is not None:
            body["message"] = self.message
        return body


def evaluate_pickup(
    card: Card | None, origin: PickupOrigin, now: datetime,
) -> tuple[PickupOutcome, CardUpdate | None]:
    """Decide the outcome of one pickup request. Pure — no state mutation."""
    if card is None:
        return PickupOutcome(
            ok=False, reason=PickupRejection.INVALID_CODE,
            message="Invalid pickup code",
        ), None

    if card.status == CardStatus.PICKED_UP:
        outcome = PickupOutcome(
            ok=False, reason=PickupRejection.ALREADY_PICKED_UP,
            card_id=card.id, message="Card has already been picked up",
        )
        # a repeat after an open request is the box confirming, whatever the origin
        awaiting_box = (
            card.open_requested_at is not None and card.box_opened_at is None
        )
        return outcome, (CardUpdate(box_opened_at=now) if awaiting_box else None)

    update = CardUpdate(status=CardStatus.PICKED_UP, picked_up_at=now)
    if card.box_id is not None:
        if origin == PickupOrigin.APP:
            update = CardUpdate(
                status=CardStatus.PICKED_UP, picked_up_at=now, open_requested_at=now,
            )
        else:
            update = CardUpdate(
                status=CardStatus.PICKED_UP, picked_up_at=now, box_opened_at=now,
            )
    return PickupOutcome(
        ok=True, card_id=card.id,
        message="Card has been taken out successfully",
    ), update

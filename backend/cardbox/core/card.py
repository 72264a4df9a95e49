"""Card Entity — the found-card record and its single merge operation.

Invariants:
    - reference_code is derived from id (first 8 chars, uppercased), never stored separately
    - apply_update is the only way fields change after creation; it returns a new Card
    - A present (non-None) value in CardUpdate always overwrites; None means "leave as is"
    - picked_up_at is non-null iff status == PICKED_UP (checked in lifecycle_rules)

Design Decisions:
    - Frozen dataclass + dataclasses.replace: the store hands out snapshots, so a
      caller holding a Card never observes a concurrent update half-applied
    - to_wire() emits the camelCase JSON the web UI reads
"""

from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone

from cardbox.core.domain_types import CardId, CardSource, CardStatus


REFERENCE_CODE_LENGTH: int = 8


def derive_reference_code(card_id: str) -> str:
    """First 8 characters of the id, uppercased."""
    return card_id[:REFERENCE_CODE_LENGTH].upper()


def normalize_reference_code(token: str) -> str:
    return token.strip().upper()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Card:
    """One found ID card moving through the lost-and-found lifecycle."""
    id: CardId
    source: CardSource
    status: CardStatus = CardStatus.AWAITING_RESOLUTION
    identifier: str | None = None
    owner_name: str | None = None
    owner_email: str | None = None
    finder_contact: str | None = None
    dropoff_description: str | None = None
    box_id: str | None = None
    pickup_code: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    picked_up_at: datetime | None = None
    open_requested_at: datetime | None = None
    box_opened_at: datetime | None = None

    @property
    def reference_code(self) -> str:
        return derive_reference_code(self.id)

    @property
    def is_consumed(self) -> bool:
        return self.status == CardStatus.PICKED_UP

    def to_wire(self) -> dict:
        """Serialize to the camelCase JSON shape of GET /cards/{token}."""
        return {
            "id": self.id,
            "referenceCode": self.reference_code,
            "identifier": self.identifier,
            "ownerName": self.owner_name,
            "ownerEmail": self.owner_email,
            "source": self.source.value,
            "finderContact": self.finder_contact,
            "dropoffDescription": self.dropoff_description,
            "boxId": self.box_id,
            "pickupCode": self.pickup_code,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
            "pickedUpAt": _iso(self.picked_up_at),
            "openRequestedAt": _iso(self.open_requested_at),
            "boxOpenedAt": _iso(self.box_opened_at),
        }


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class CardUpdate:
    """Partial update — every updatable attribute is present (value) or absent (None).

    id, source, created_at, finder_contact and dropoff_description are not
    updatable and therefore not modeled here.
    """
    status: CardStatus | None = None
    identifier: str | None = None
    owner_name: str | None = None
    owner_email: str | None = None
    box_id: str | None = None
    pickup_code: str | None = None
    picked_up_at: datetime | None = None
    open_requested_at: datetime | None = None
    box_opened_at: datetime | None = None

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))


def apply_update(card: Card, update: CardUpdate) -> Card:
    """Merge update into card. Present values overwrite; absent ones are ignored."""
    changes = {
        f.name: getattr(update, f.name)
        for f in fields(update)
        if getattr(update, f.name) is not None
    }
    if not changes:
        return card
    return replace(card, **changes)

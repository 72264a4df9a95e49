"""In-Memory Card Store — the single owner of card records for the process lifetime.

Invariants:
    - Records kept in insertion order (dict); ids are uuid4 strings
    - Every read and write takes the store's RLock; transaction() exposes the same
      lock so the engine can make read → decide → write atomic
    - Callers only ever see frozen Card snapshots; no internal dict leaks out
    - No business rules here: the store never decides a status

Design Decisions:
    - RLock (not asyncio.Lock): store methods are sync and the engine never awaits
      while holding it, so a thread lock also covers threadpool-run sync routes
    - Reference-code collisions (8-char prefix of a uuid) resolve to the first
      inserted card — documented degenerate behavior, not asserted impossible
    - Pickup-code lookup prefers the unconsumed card, then the latest consumed one:
      codes may be reused in a box once the earlier card left it
"""

import logging
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from cardbox.core.card import Card, CardUpdate, apply_update, normalize_reference_code
from cardbox.core.domain_types import CardId, CardStatus
from cardbox.core.repository_protocols import NewCard

logger = logging.getLogger(__name__)


class InMemoryCardStore:
    """Card records behind a lock. One instance per application lifespan."""

    def __init__(self) -> None:
        self._cards: dict[str, Card] = {}
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Hold the store lock across several calls. Never await inside."""
        with self._lock:
            yield

    def __len__(self) -> int:
        with self._lock:
            return len(self._cards)

    def create(self, new_card: NewCard) -> Card:
        card = Card(
            id=CardId(str(uuid.uuid4())),
            source=new_card.source,
            identifier=new_card.identifier,
            owner_name=new_card.owner_name,
            finder_contact=new_card.finder_contact,
            dropoff_description=new_card.dropoff_description,
            box_id=new_card.box_id,
            pickup_code=new_card.pickup_code,
            created_at=datetime.now(timezone.utc),
        )
        with self._lock:
            self._cards[card.id] = card
        logger.info(
            "Card created",
            extra={"card_id": card.id, "box_id": card.box_id},
        )
        return card

    def get_by_id(self, card_id: str) -> Card | None:
        with self._lock:
            return self._cards.get(card_id)

    def get_by_reference_code(self, code: str) -> Card | None:
        if not code:
            return None
        wanted = normalize_reference_code(code)
        with self._lock:
            for card in self._cards.values():
                if card.reference_code == wanted:
                    return card
        return None

    def get_by_pickup_code(self, code: str, box_id: str) -> Card | None:
        latest_consumed: Card | None = None
        with self._lock:
            for card in self._cards.values():
                if card.pickup_code != code or card.box_id != box_id:
                    continue
                if not card.is_consumed:
                    return card
                latest_consumed = card
        return latest_consumed

    def update(self, card_id: str, update: CardUpdate) -> Card | None:
        with self._lock:
            card = self._cards.get(card_id)
            if card is None:
                return None
            updated = apply_update(card, update)
            self._cards[card_id] = updated
            return updated

    def list_by_status(self, status: CardStatus | None = None) -> list[Card]:
        with self._lock:
            cards = [
                c for c in self._cards.values()
                if status is None or c.status == status
            ]
        # reversed first so equal timestamps also list the later insert first
        return sorted(reversed(cards), key=lambda c: c.created_at, reverse=True)

    def codes_in_use(self, box_id: str) -> set[str]:
        with self._lock:
            return {
                c.pickup_code for c in self._cards.values()
                if c.box_id == box_id and c.pickup_code and not c.is_consumed
            }

    def unconsumed_for_box(self, box_id: str) -> list[Card]:
        with self._lock:
            return [
                c for c in self._cards.values()
                if c.box_id == box_id and not c.is_consumed
            ]

    def pending_open_request(
        self, box_id: str, not_before: datetime,
    ) -> Card | None:
        """Oldest open request for box_id not yet confirmed and not older than not_before."""
        with self._lock:
            pending = [
                c for c in self._cards.values()
                if c.box_id == box_id
                and c.open_requested_at is not None
                and c.box_opened_at is None
                and c.open_requested_at >= not_before
            ]
        if not pending:
            return None
        return min(pending, key=lambda c: c.open_requested_at)

"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - Store methods are synchronous (memory only); collaborator methods are async (network)
    - Notifier.notify never raises; CardTextExtractor.extract may raise or time out

Design Decisions:
    - Protocol over ABC: structural subtyping, tests pass plain fakes
"""

from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from cardbox.core.card import Card, CardUpdate
from cardbox.core.domain_types import CardSource, CardStatus
from cardbox.core.format_messages import OwnerContact


@dataclass(frozen=True)
class NewCard:
    """Fields accepted by CardRepository.create. Everything else is defaulted."""
    source: CardSource
    identifier: str | None = None
    owner_name: str | None = None
    finder_contact: str | None = None
    dropoff_description: str | None = None
    box_id: str | None = None
    pickup_code: str | None = None


@dataclass(frozen=True)
class ExtractedCardText:
    """What OCR could read off a card. Either field may be missing."""
    identifier: str | None = None
    name: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.identifier and not self.name


class CardRepository(Protocol):
    """Contract for card storage — implemented by infrastructure.card_store."""
    def transaction(self) -> AbstractContextManager: ...
    def create(self, new_card: NewCard) -> Card: ...
    def get_by_id(self, card_id: str) -> Card | None: ...
    def get_by_reference_code(self, code: str) -> Card | None: ...
    def get_by_pickup_code(self, code: str, box_id: str) -> Card | None: ...
    def update(self, card_id: str, update: CardUpdate) -> Card | None: ...
    def list_by_status(self, status: CardStatus | None = None) -> list[Card]: ...
    def codes_in_use(self, box_id: str) -> set[str]: ...
    def unconsumed_for_box(self, box_id: str) -> list[Card]: ...
    def pending_open_request(
        self, box_id: str, not_before: datetime,
    ) -> Card | None: ...


class OwnerDirectory(Protocol):
    """Identifier → owner email lookup."""
    def resolve(self, identifier: str | None) -> str | None: ...


class Notifier(Protocol):
    """Sends the "card found" message. Returns delivery success; never raises."""
    async def notify(self, owner: OwnerContact, card: Card) -> bool: ...


class CardTextExtractor(Protocol):
    """OCR boundary. May raise or hang; the engine bounds and recovers."""
    async def extract(
        self, image: bytes, media_type: str,
    ) -> ExtractedCardText | None: ...

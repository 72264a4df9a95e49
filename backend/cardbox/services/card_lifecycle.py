"""Card Lifecycle Engine — intake, resolution, notification, staff override and pickup.

Invariants:
    - The card (and, for box cards, its pickup code) exists before any OCR or
      notification call, so a slow or failed collaborator never hides a code
    - Every read → decide → write runs inside store.transaction(); no await
      happens while the store lock is held
    - OCR and notification calls are bounded by asyncio timeouts; expiry, errors
      and False all mean "failed" and never abort an intake
    - Decisions come from core.lifecycle_rules; this module only sequences IO

Design Decisions:
    - Impure shell around a pure core: rules are testable without fakes
    - After each await the card is re-read: staff or a pickup may have moved it
"""

import asyncio
import logging
import random
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timezone

from cardbox.core.box_protocol import is_valid_box_id
from cardbox.core.card import Card, CardUpdate
from cardbox.core.domain_types import CardSource, CardStatus, PickupOrigin
from cardbox.core.errors import (
    ErrorContext, NotificationFailedError, ResourceNotFoundError,
    ValidationFailedError,
)
from cardbox.core.format_messages import OwnerContact, format_intake_message
from cardbox.core.lifecycle_rules import (
    PickupOutcome, can_transition, check_manual_assignment, choose_identifier,
    clean_optional_text, evaluate_pickup, extraction_update, is_consistent,
    normalize_identifier, resolution_update, validate_email,
)
from cardbox.core.pickup_code import allocate_pickup_code
from cardbox.core.repository_protocols import (
    CardRepository, CardTextExtractor, ExtractedCardText, NewCard, Notifier,
    OwnerDirectory,
)

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Card not found. Please check your reference code."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PhotoIntake:
    """App-side report of a found card."""
    image: bytes
    media_type: str = "image/jpeg"
    finder_contact: str | None = None
    dropoff_description: str | None = None
    box_id: str | None = None
    manual_identifier: str | None = None


@dataclass(frozen=True)
class IntakeResult:
    card: Card
    email_sent: bool
    email_address: str | None
    extracted: ExtractedCardText | None = None
    message: str = ""


class CardLifecycleEngine:
    """Owns every card state change. Stateless apart from its collaborators."""

    def __init__(
        self,
        store: CardRepository,
        directory: OwnerDirectory,
        notifier: Notifier,
        extractor: CardTextExtractor | None = None,
        *,
        ocr_timeout_seconds: float = 45.0,
        notify_timeout_seconds: float = 15.0,
        max_image_bytes: int | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self._directory = directory
        self._notifier = notifier
        self._extractor = extractor
        self._ocr_timeout = ocr_timeout_seconds
        self._notify_timeout = notify_timeout_seconds
        self._max_image_bytes = max_image_bytes
        self._rng = rng
        self.clock = clock

    # ─── Intake ──────────────────────────────────────────────────

    async def intake_from_photo(self, intake: PhotoIntake) -> IntakeResult:
        """Finder uploaded a photo. OCR failure never aborts the intake."""
        if not intake.image:
            raise ValidationFailedError("No image file provided", "cardImage")
        if self._max_image_bytes and len(intake.image) > self._max_image_bytes:
            raise ValidationFailedError("Image file is too large", "cardImage")
        box_id = self._optional_box_id(intake.box_id)

        card = self._create_card(NewCard(
            source=CardSource.WEB,
            finder_contact=clean_optional_text(intake.finder_contact),
            dropoff_description=clean_optional_text(intake.dropoff_description),
            box_id=box_id,
        ))

        extracted = await self._extract(card, intake.image, intake.media_type)
        identifier = choose_identifier(
            intake.manual_identifier, extracted.identifier if extracted else None,
        )
        name = extracted.name if extracted else None
        if identifier or name:
            card = self._apply(
                card.id, lambda current: extraction_update(current, identifier, name),
            )

        card, email_sent, email = await self._resolve_and_notify(card)
        return IntakeResult(
            card=card,
            email_sent=email_sent,
            email_address=email,
            extracted=extracted,
            message=format_intake_message(card, extracted_anything=extracted is not None),
        )

    async def intake_from_box(self, identifier: str | None, box_id: str | None) -> IntakeResult:
        """Box scanned a card itself. No image, no OCR; always issues a code."""
        normalized = normalize_identifier(identifier)
        box = clean_optional_text(box_id)
        if not normalized or not box:
            raise ValidationFailedError(
                "identifier and boxId are required",
                "identifier" if not normalized else "boxId",
            )
        box = self._optional_box_id(box)

        card = self._create_card(NewCard(
            source=CardSource.BOX, identifier=normalized, box_id=box,
        ))
        card, email_sent, email = await self._resolve_and_notify(card)
        return IntakeResult(
            card=card, email_sent=email_sent, email_address=email,
            message=format_intake_message(card, extracted_anything=False),
        )

    # ─── Staff override ──────────────────────────────────────────

    async def assign_email(self, card_id: str, email: str | None) -> Card:
        """Staff sets the owner email by hand and the notification is retried."""
        address = validate_email(email)
        with self.store.transaction():
            card = self._get_or_404(card_id)
            check_manual_assignment(card)
            update = CardUpdate(owner_email=address)
            if card.box_id and not card.pickup_code:
                update = CardUpdate(
                    owner_email=address, pickup_code=self._allocate_code(card.box_id),
                )
            card = self._write(card.id, update)
        logger.info("Staff assigned owner email", extra={"card_id": card.id})

        sent = await self._notify(OwnerContact(address, card.owner_name), card)
        if not sent:
            current = self.store.get_by_id(card.id) or card
            raise NotificationFailedError(card.id, address, card=current.to_wire())

        with self.store.transaction():
            current = self._get_or_404(card.id)
            if can_transition(current.status, CardStatus.NOTIFIED):
                current = self._write(
                    current.id, CardUpdate(status=CardStatus.NOTIFIED),
                )
        return current

    # ─── Pickup ──────────────────────────────────────────────────

    def request_pickup(
        self, code: str | None, box_id: str | None,
        origin: PickupOrigin = PickupOrigin.APP,
    ) -> PickupOutcome:
        """Consume a pickup code exactly once. Safe to repeat."""
        code = (code or "").strip()
        box = (box_id or "").strip()
        if not code or not box:
            raise ValidationFailedError(
                "pickupCode and boxId are required",
                "pickupCode" if not code else "boxId",
            )

        now = self.clock()
        with self.store.transaction():
            card = self.store.get_by_pickup_code(code, box)
            outcome, update = evaluate_pickup(card, origin, now)
            if card is not None and update is not None:
                self._write(card.id, update)

        logger.info(
            f"Pickup request: {'ok' if outcome.ok else outcome.reason.value}",
            extra={
                "card_id": outcome.card_id, "box_id": box, "origin": origin.value,
            },
        )
        return outcome

    # ─── Reads ───────────────────────────────────────────────────

    def lookup(self, token: str) -> Card:
        """Full id first, then the 8-character reference code (any case)."""
        token = (token or "").strip()
        card = self.store.get_by_id(token) or self.store.get_by_reference_code(token)
        if card is None:
            raise ResourceNotFoundError(
                "Card", token, context=ErrorContext(user_message=NOT_FOUND_MESSAGE),
            )
        return card

    def list_cards(self, status: str | None = None) -> list[Card]:
        if not status:
            return self.store.list_by_status(None)
        try:
            wanted = CardStatus(status)
        except ValueError:
            raise ValidationFailedError(f"Unknown card status '{status}'", "status")
        return self.store.list_by_status(wanted)

    # ─── Internals ───────────────────────────────────────────────

    def _optional_box_id(self, box_id: str | None) -> str | None:
        box = clean_optional_text(box_id)
        if box is not None and not is_valid_box_id(box):
            raise ValidationFailedError(
                "boxId must be 1-32 letters, digits, '_' or '-'", "boxId",
            )
        return box

    def _allocate_code(self, box_id: str) -> str:
        """Caller holds the store lock."""
        return allocate_pickup_code(
            box_id, self.store.codes_in_use(box_id), self._rng,
        )

    def _create_card(self, new_card: NewCard) -> Card:
        """Create the card with its pickup code in one locked step."""
        with self.store.transaction():
            if new_card.box_id:
                new_card = replace(
                    new_card, pickup_code=self._allocate_code(new_card.box_id),
                )
            return self.store.create(new_card)

    def _get_or_404(self, card_id: str) -> Card:
        card = self.store.get_by_id(card_id)
        if card is None:
            raise ResourceNotFoundError("Card", card_id)
        return card

    def _apply(self, card_id: str, decide: Callable[[Card], CardUpdate]) -> Card:
        """Re-read, decide, write — atomically."""
        with self.store.transaction():
            current = self._get_or_404(card_id)
            return self._write(card_id, decide(current))

    def _write(self, card_id: str, update: CardUpdate) -> Card | None:
        """Caller holds the store lock. Flags writes that break the stamp/code rules."""
        card = self.store.update(card_id, update)
        if card is not None and not is_consistent(card):
            logger.error(
                "Card left in an inconsistent state",
                extra={"card_id": card.id, "status": card.status.value},
            )
        return card

    async def _resolve_and_notify(
        self, card: Card,
    ) -> tuple[Card, bool, str | None]:
        email = self._directory.resolve(card.identifier)
        if email is None:
            logger.info(
                "No owner email known; card awaits staff resolution",
                extra={"card_id": card.id},
            )
            return card, False, None

        sent = await self._notify(OwnerContact(email, card.owner_name), card)
        card = self._apply(
            card.id,
            lambda current: resolution_update(current, email, card.owner_name, sent),
        )
        return card, sent, email

    async def _notify(self, owner: OwnerContact, card: Card) -> bool:
        try:
            return bool(await asyncio.wait_for(
                self._notifier.notify(owner, card), timeout=self._notify_timeout,
            ))
        except asyncio.TimeoutError:
            logger.warning(
                f"Notification timed out after {self._notify_timeout}s",
                extra={"card_id": card.id},
            )
        except Exception as e:
            logger.error(
                f"Notifier raised: {e}", exc_info=True, extra={"card_id": card.id},
            )
        return False

    async def _extract(
        self, card: Card, image: bytes, media_type: str,
    ) -> ExtractedCardText | None:
        if self._extractor is None:
            return None
        try:
            return await asyncio.wait_for(
                self._extractor.extract(image, media_type), timeout=self._ocr_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Card OCR timed out after {self._ocr_timeout}s",
                extra={"card_id": card.id},
            )
        except Exception as e:
            logger.warning(
                f"Card OCR failed, continuing without extraction: {e}",
                extra={"card_id": card.id},
            )
        return None

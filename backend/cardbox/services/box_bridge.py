"""Box Bridge — relays open-requests, code pushes and pickup confirmations for box devices.

Invariants:
    - check_open is read-only: the box polls every ~2s and may repeat itself;
      the same pending request is returned until the box confirms it
    - confirm_pickup is the engine's pickup with origin=BOX, so repeats are idempotent
    - Open requests older than open_request_ttl_seconds are ignored
    - handle_frame never raises for bad input: malformed frames get an ERR reply
"""

import logging
from dataclasses import dataclass
from datetime import timedelta

from cardbox.core.box_protocol import (
    BoxFrame, CodePush, ErrorReply, OpenCheck, OpenReply, PickupConfirm,
    PickupReply, decode_frame, encode_frame, is_valid_box_id,
)
from cardbox.core.domain_types import PickupOrigin
from cardbox.core.errors import BoxFrameError, ValidationFailedError
from cardbox.core.lifecycle_rules import PickupOutcome
from cardbox.services.card_lifecycle import CardLifecycleEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OpenCheckResult:
    should_open: bool
    pickup_code: str | None = None
    card_id: str | None = None

    def to_wire(self) -> dict:
        body: dict = {"shouldOpen": self.should_open}
        if self.should_open:
            body["pickupCode"] = self.pickup_code
            body["cardId"] = self.card_id
        return body


class BoxBridge:
    """Thin adapter between box devices and the lifecycle engine."""

    def __init__(
        self, engine: CardLifecycleEngine, open_request_ttl_seconds: int = 120,
    ) -> None:
        self._engine = engine
        self._ttl = timedelta(seconds=open_request_ttl_seconds)

    def check_open(self, box_id: str | None) -> OpenCheckResult:
        box = self._require_box_id(box_id)
        not_before = self._engine.clock() - self._ttl
        card = self._engine.store.pending_open_request(box, not_before)
        if card is None:
            return OpenCheckResult(should_open=False)
        return OpenCheckResult(
            should_open=True, pickup_code=card.pickup_code, card_id=card.id,
        )

    def confirm_pickup(self, code: str | None, box_id: str | None) -> PickupOutcome:
        return self._engine.request_pickup(code, box_id, PickupOrigin.BOX)

    def code_push(self, box_id: str | None) -> list[str]:
        """Frames for every code the box should currently accept."""
        box = self._require_box_id(box_id)
        return [
            encode_frame(CodePush(card.pickup_code, box))
            for card in self._engine.store.unconsumed_for_box(box)
            if card.pickup_code
        ]

    def handle_frame(self, raw: str | bytes) -> str:
        """Decode one box frame, act on it, encode the reply."""
        try:
            frame = decode_frame(raw)
        except BoxFrameError as e:
            logger.warning(f"Rejected box frame: {e.reason}")
            return encode_frame(ErrorReply("malformed_frame"))
        return encode_frame(self._dispatch(frame))

    def _dispatch(self, frame: BoxFrame) -> BoxFrame:
        match frame:
            case OpenCheck(box_id=box_id):
                result = self.check_open(box_id)
                return OpenReply(result.pickup_code if result.should_open else None)
            case PickupConfirm(code=code, box_id=box_id):
                outcome = self.confirm_pickup(code, box_id)
                if outcome.ok:
                    card = self._engine.store.get_by_id(outcome.card_id)
                    return PickupReply(True, card.reference_code)
                return PickupReply(False, outcome.reason.value)
        return ErrorReply("unexpected_frame")

    @staticmethod
    def _require_box_id(box_id: str | None) -> str:
        box = (box_id or "").strip()
        if not is_valid_box_id(box):
            raise ValidationFailedError("boxId is required", "boxId")
        return box

"""Lifecycle Rules — transitions, intake merges, email checks and pickup decisions.

Tests cover:
    - can_transition: forward only, PICKED_UP terminal
    - choose_identifier: manual entry wins over OCR
    - extraction_update / resolution_update never clobber existing values
    - validate_email / check_manual_assignment errors
    - evaluate_pickup: invalid code, already picked up, success with timestamps
"""

from datetime import datetime, timezone

import pytest

from cardbox.core.card import Card, apply_update
from cardbox.core.domain_types import (
    CardId, CardSource, CardStatus, PickupOrigin, PickupRejection,
)
from cardbox.core.errors import CardStateConflictError, ValidationFailedError
from cardbox.core.lifecycle_rules import (
    can_transition, check_manual_assignment, choose_identifier, clean_optional_text,
    evaluate_pickup, extraction_update, is_consistent, normalize_identifier,
    resolution_update, validate_email,
)


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _card(**overrides) -> Card:
    fields = {"id": CardId("0f0e0d0c-aaaa-4bbb-8ccc-000000000001"), "source": CardSource.WEB}
    fields.update(overrides)
    return Card(**fields)


# ─── Transitions ─────────────────────────────────────────────────

@pytest.mark.parametrize("current, target, allowed", [
    (CardStatus.AWAITING_RESOLUTION, CardStatus.NOTIFIED, True),
    (CardStatus.AWAITING_RESOLUTION, CardStatus.PICKED_UP, True),
    (CardStatus.NOTIFIED, CardStatus.PICKED_UP, True),
    (CardStatus.NOTIFIED, CardStatus.AWAITING_RESOLUTION, False),
    (CardStatus.PICKED_UP, CardStatus.NOTIFIED, False),
    (CardStatus.PICKED_UP, CardStatus.PICKED_UP, False),
])
def test_can_transition(current, target, allowed):
    assert can_transition(current, target) is allowed


def test_is_consistent_requires_stamp_iff_picked_up():
    assert is_consistent(_card())
    assert not is_consistent(_card(status=CardStatus.PICKED_UP))
    assert not is_consistent(_card(picked_up_at=NOW))
    assert is_consistent(_card(status=CardStatus.PICKED_UP, picked_up_at=NOW))


def test_is_consistent_requires_code_for_box_cards():
    assert not is_consistent(_card(box_id="BOX_1"))
    assert is_consistent(_card(box_id="BOX_1", pickup_code="1111"))


# ─── Intake helpers ──────────────────────────────────────────────

def test_normalize_identifier_strips_whitespace():
    assert normalize_identifier(" 132 264 610\n") == "132264610"
    assert normalize_identifier("   ") is None
    assert normalize_identifier(None) is None


def test_manual_identifier_wins_over_extracted():
    assert choose_identifier("999", "132264610") == "999"
    assert choose_identifier(None, "132264610") == "132264610"
    assert choose_identifier("  ", "132264610") == "132264610"
    assert choose_identifier(None, None) is None


def test_clean_optional_text():
    assert clean_optional_text("  near the library ") == "near the library"
    assert clean_optional_text("") is None
    assert clean_optional_text(None) is None


def test_extraction_update_keeps_existing_name():
    update = extraction_update(_card(owner_name="Ada"), "123", "Grace")
    assert update.identifier == "123"
    assert update.owner_name is None


def test_extraction_update_freezes_identifier_after_notification():
    update = extraction_update(_card(status=CardStatus.NOTIFIED), "123", None)
    assert update.identifier is None


def test_resolution_update_promotes_on_success():
    update = resolution_update(_card(), "a@b.edu", None, notified=True)
    assert update.status == CardStatus.NOTIFIED
    assert update.owner_email == "a@b.edu"


def test_resolution_update_keeps_email_on_failed_send():
    update = resolution_update(_card(), "a@b.edu", None, notified=False)
    assert update.status is None
    assert update.owner_email == "a@b.edu"


def test_resolution_update_never_overwrites_email():
    card = _card(owner_email="staff@b.edu")
    update = resolution_update(card, "a@b.edu", None, notified=True)
    assert update.owner_email is None


def test_resolution_update_never_regresses_picked_up_card():
    card = _card(status=CardStatus.PICKED_UP, picked_up_at=NOW)
    update = resolution_update(card, "a@b.edu", None, notified=True)
    assert update.status is None


# ─── Manual email assignment ─────────────────────────────────────

@pytest.mark.parametrize("email", ["", "   ", "no-at-sign", None])
def test_validate_email_rejects(email):
    with pytest.raises(ValidationFailedError) as exc_info:
        validate_email(email)
    assert exc_info.value.http_status == 400
    assert exc_info.value.to_response()["error"]["field"] == "email"


def test_validate_email_trims():
    assert validate_email("  a@b.edu ") == "a@b.edu"


def test_manual_assignment_only_while_awaiting():
    check_manual_assignment(_card())
    with pytest.raises(CardStateConflictError) as exc_info:
        check_manual_assignment(_card(status=CardStatus.NOTIFIED))
    assert exc_info.value.http_status == 409


# ─── Pickup ──────────────────────────────────────────────────────

def test_unknown_code_is_invalid():
    outcome, update = evaluate_pickup(None, PickupOrigin.APP, NOW)
    assert outcome.ok is False
    assert outcome.reason == PickupRejection.INVALID_CODE
    assert update is None
    assert outcome.to_wire()["reason"] == "invalid_code"


def test_successful_pickup_stamps_card():
    card = _card(status=CardStatus.NOTIFIED)
    outcome, update = evaluate_pickup(card, PickupOrigin.APP, NOW)
    assert outcome.ok is True
    assert outcome.card_id == card.id
    picked = apply_update(card, update)
    assert picked.status == CardStatus.PICKED_UP
    assert picked.picked_up_at == NOW
    assert is_consistent(picked)


def test_pickup_allowed_while_awaiting_resolution():
    outcome, _ = evaluate_pickup(_card(), PickupOrigin.APP, NOW)
    assert outcome.ok is True


def test_app_pickup_of_box_card_requests_open():
    card = _card(box_id="BOX_1", pickup_code="1234")
    _, update = evaluate_pickup(card, PickupOrigin.APP, NOW)
    assert update.open_requested_at == NOW
    assert update.box_opened_at is None


def test_box_pickup_marks_box_opened():
    card = _card(box_id="BOX_1", pickup_code="1234")
    _, update = evaluate_pickup(card, PickupOrigin.BOX, NOW)
    assert update.box_opened_at == NOW
    assert update.open_requested_at is None


def test_second_pickup_is_rejected():
    card = _card(status=CardStatus.PICKED_UP, picked_up_at=NOW)
    outcome, update = evaluate_pickup(card, PickupOrigin.APP, NOW)
    assert outcome.ok is False
    assert outcome.reason == PickupRejection.ALREADY_PICKED_UP
    assert update is None


def test_box_confirm_after_app_pickup_acknowledges_open():
    card = _card(
        box_id="BOX_1", pickup_code="1234", status=CardStatus.PICKED_UP,
        picked_up_at=NOW, open_requested_at=NOW,
    )
    outcome, update = evaluate_pickup(card, PickupOrigin.BOX, NOW)
    assert outcome.reason == PickupRejection.ALREADY_PICKED_UP
    assert update.box_opened_at == NOW


def test_repeat_request_without_box_origin_still_acknowledges_open():
    card = _card(
        box_id="BOX_1", pickup_code="1234", status=CardStatus.PICKED_UP,
        picked_up_at=NOW, open_requested_at=NOW,
    )
    _, update = evaluate_pickup(card, PickupOrigin.APP, NOW)
    assert update.box_opened_at == NOW

    opened = apply_update(card, update)
    _, again = evaluate_pickup(opened, PickupOrigin.APP, NOW)
    assert again is None


def test_outcome_wire_shape():
    outcome, _ = evaluate_pickup(_card(), PickupOrigin.APP, NOW)
    wire = outcome.to_wire()
    assert wire["ok"] is True
    assert "reason" not in wire
    assert wire["message"] == "Card has been taken out successfully"

"""Card Records — status lookup for owners, listing and email override for staff.

Invariants:
    - GET /api/cards/{token} accepts the full id or the 8-char reference code (any case)
    - Listing and set-email sit behind the staff gate
    - set-email: 400 invalid email, 404 unknown card, 409 wrong status, 502 send failure
"""

import logging

from fastapi import APIRouter, Depends, Query

from cardbox.api.staff_gate import require_staff
from cardbox.schemas.card import SetEmailRequest, SetEmailResponse
from cardbox.services.container import Services, get_services

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/cards", tags=["cards"])


@router.get("", dependencies=[Depends(require_staff)])
async def list_cards(
    status_filter: str | None = Query(None, alias="status", max_length=32),
    services: Services = Depends(get_services),
):
    """All cards, newest first, optionally filtered by status."""
    return [card.to_wire() for card in services.engine.list_cards(status_filter)]


@router.get("/{token}")
async def get_card(token: str, services: Services = Depends(get_services)):
    """Card status by id or reference code."""
    return services.engine.lookup(token).to_wire()


@router.post(
    "/{card_id}/set-email",
    response_model=SetEmailResponse,
    dependencies=[Depends(require_staff)],
)
async def set_card_email(
    card_id: str,
    body: SetEmailRequest,
    services: Services = Depends(get_services),
):
    """Staff assigns the owner email and the notification is sent."""
    card = await services.engine.assign_email(card_id, body.email)
    return SetEmailResponse(
        success=True, message="Email sent successfully", card=card.to_wire(),
    )

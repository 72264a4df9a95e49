"""Pickup & Box Routes — code consumption and the polling interface of box devices.

Invariants:
    - POST /api/pickup-request answers 200 for every well-formed request; invalid
      and already-used codes are ok=false outcomes, not HTTP errors
    - check-open and codes are read-only and safe to poll
    - POST /api/box/frames takes one text frame and answers one text frame
"""

import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse

from cardbox.core.box_protocol import MAX_FRAME_BYTES
from cardbox.core.domain_types import PickupOrigin
from cardbox.schemas.card import BoxCodesResponse, PickupRequest
from cardbox.services.container import Services, get_services

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["pickup"])


@router.post("/pickup-request")
async def request_pickup(
    body: PickupRequest, services: Services = Depends(get_services),
):
    """Owner (app) or box keypad submits a pickup code."""
    outcome = services.engine.request_pickup(
        body.pickup_code, body.box_id, PickupOrigin(body.origin),
    )
    return outcome.to_wire()


@router.get("/box/check-open")
async def check_open(
    box_id: str | None = Query(None, alias="boxId", max_length=64),
    services: Services = Depends(get_services),
):
    """Polled by the box: should the door open now, and for which code."""
    return services.box_bridge.check_open(box_id).to_wire()


@router.get("/box/codes", response_model=BoxCodesResponse)
async def box_codes(
    box_id: str | None = Query(None, alias="boxId", max_length=64),
    services: Services = Depends(get_services),
):
    """Code-push frames for every card currently stored in the box."""
    frames = services.box_bridge.code_push(box_id)
    return BoxCodesResponse(box_id=box_id.strip(), frames=frames)


@router.post("/box/frames", response_class=PlainTextResponse)
async def box_frame(request: Request, services: Services = Depends(get_services)):
    """Single-frame text exchange for boxes that cannot speak JSON."""
    raw = await request.body()
    # one frame plus newline; anything bigger is rejected by the codec
    reply = services.box_bridge.handle_frame(raw[: MAX_FRAME_BYTES + 2])
    return PlainTextResponse(reply + "\n")

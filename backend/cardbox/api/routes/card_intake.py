"""Card Intake — found-card reports from the web app (photo) and from boxes (scanned id).

Invariants:
    - Photo intake returns 400 without an image; OCR/email failures still return 200
      with emailSent=false
    - Box intake always returns a pickup code
"""

import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile

from cardbox.core.errors import ValidationFailedError
from cardbox.schemas.card import (
    BoxIntakeRequest, BoxIntakeResponse, ExtractedInfo, PhotoIntakeResponse,
)
from cardbox.services.card_lifecycle import PhotoIntake
from cardbox.services.container import Services, get_services

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["intake"])


@router.post("/found-card-photo", response_model=PhotoIntakeResponse)
async def report_found_card_photo(
    card_image: UploadFile | None = File(None, alias="cardImage"),
    finder_contact: str | None = Form(None, alias="finderContact", max_length=500),
    dropoff_description: str | None = Form(
        None, alias="dropoffDescription", max_length=1000,
    ),
    box_id: str | None = Form(None, alias="boxId", max_length=64),
    manual_identifier: str | None = Form(None, alias="manualIdentifier", max_length=64),
    services: Services = Depends(get_services),
):
    """Finder uploads a card photo; OCR, resolution and notification follow."""
    if card_image is None:
        raise ValidationFailedError("No image file provided", "cardImage")
    image = await card_image.read()

    result = await services.engine.intake_from_photo(PhotoIntake(
        image=image,
        media_type=card_image.content_type or "image/jpeg",
        finder_contact=finder_contact,
        dropoff_description=dropoff_description,
        box_id=box_id,
        manual_identifier=manual_identifier,
    ))
    card = result.card
    extracted = None
    if result.extracted is not None:
        extracted = ExtractedInfo(
            identifier=result.extracted.identifier, name=result.extracted.name,
        )
    return PhotoIntakeResponse(
        card_id=card.id,
        reference_code=card.reference_code,
        message=result.message,
        box_id=card.box_id,
        pickup_code=card.pickup_code,
        identifier=card.identifier,
        extracted=extracted,
        email_sent=result.email_sent,
        email_address=result.email_address,
        status=card.status.value,
    )


@router.post("/found-card-by-identifier", response_model=BoxIntakeResponse)
async def report_found_card_by_identifier(
    body: BoxIntakeRequest, services: Services = Depends(get_services),
):
    """Box scanned a card identifier and stored the card."""
    result = await services.engine.intake_from_box(body.identifier, body.box_id)
    return BoxIntakeResponse(
        card_id=result.card.id, pickup_code=result.card.pickup_code,
    )

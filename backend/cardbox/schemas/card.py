"""Card Schemas — Pydantic models for the card, pickup and box endpoints.

Invariants:
    - Wire keys are camelCase (alias_generator); Python attributes stay snake_case
    - Required-field checks for domain fields live in the engine, so a blank value
      and a missing one produce the same VALIDATION_ERROR envelope
    - Length caps applied here, before anything reaches the store
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ─── Requests ────────────────────────────────────────────────────

class BoxIntakeRequest(CamelModel):
    """Box-side report: the box scanned the identifier itself."""
    identifier: str | None = Field(None, max_length=64)
    box_id: str | None = Field(None, max_length=64)


class PickupRequest(CamelModel):
    """Pickup code entry from the retrieval app or the box keypad."""
    pickup_code: str | None = Field(None, max_length=16)
    box_id: str | None = Field(None, max_length=64)
    origin: Literal["app", "box"] = "app"


class SetEmailRequest(CamelModel):
    email: str | None = Field(None, max_length=254)


# ─── Responses ───────────────────────────────────────────────────

class ExtractedInfo(CamelModel):
    identifier: str | None = None
    name: str | None = None


class PhotoIntakeResponse(CamelModel):
    card_id: str
    reference_code: str
    message: str
    box_id: str | None = None
    pickup_code: str | None = None
    identifier: str | None = None
    extracted: ExtractedInfo | None = None
    email_sent: bool = False
    email_address: str | None = None
    status: str


class BoxIntakeResponse(CamelModel):
    card_id: str
    pickup_code: str


class SetEmailResponse(CamelModel):
    success: bool
    message: str
    card: dict


class BoxCodesResponse(CamelModel):
    box_id: str
    frames: list[str]

"""Card OCR — reads the identifier and owner name off a card photo with a vision model.

Invariants:
    - extract() returns ExtractedCardText, or None when the model saw nothing usable
    - Unparseable model output raises ExtractionError; API failures raise AnthropicAPIError
    - The image is sent base64-encoded and never logged

Design Decisions:
    - JSON-only prompt + fence stripping: models sometimes wrap JSON in ``` blocks
    - Identifier kept as digits only: the campus id is numeric and OCR tends to
      insert spaces or dashes
"""

import base64
import json
import logging
import re

from cardbox.core.errors import ExtractionError
from cardbox.core.repository_protocols import ExtractedCardText
from cardbox.infrastructure.anthropic_client import ResilientAnthropicClient

logger = logging.getLogger(__name__)

SUPPORTED_MEDIA_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})

SYSTEM_PROMPT = (
    "You read campus student ID cards. Reply with ONLY a JSON object with keys "
    '"identifier" (the student ID number printed on the card, digits only) and '
    '"name" (the card holder\'s full name). Use null for anything you cannot read.'
)

_FENCE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")
_NON_DIGIT = re.compile(r"\D")


def parse_extraction(raw: str) -> ExtractedCardText | None:
    """Turn the model's reply into card fields. Pure."""
    content = _FENCE.sub("", raw.strip())
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ExtractionError(f"reply is not JSON ({e.msg})")
    if not isinstance(data, dict):
        raise ExtractionError("reply is not a JSON object")

    identifier = data.get("identifier")
    if identifier is not None:
        identifier = _NON_DIGIT.sub("", str(identifier)) or None
    name = data.get("name")
    if name is not None:
        name = str(name).strip() or None

    result = ExtractedCardText(identifier=identifier, name=name)
    return None if result.is_empty else result


class AnthropicCardExtractor:
    """CardTextExtractor backed by an Anthropic vision model."""

    def __init__(
        self, client: ResilientAnthropicClient, model: str, max_tokens: int = 256,
    ) -> None:
        self._client = client
        self._model = model
        self._max_tokens = max_tokens

    async def extract(
        self, image: bytes, media_type: str,
    ) -> ExtractedCardText | None:
        if media_type not in SUPPORTED_MEDIA_TYPES:
            media_type = "image/jpeg"
        response = await self._client.create_message(
            model=self._model,
            max_tokens=self._max_tokens,
            system=SYSTEM_PROMPT,
            messages=[{
                "role": "user",
                "content": [
                    {
                        "type": "image",
                        "source": {
                            "type": "base64",
                            "media_type": media_type,
                            "data": base64.b64encode(image).decode("ascii"),
                        },
                    },
                    {"type": "text", "text": "Extract the card fields."},
                ],
            }],
        )
        text = "".join(
            block.text for block in response.content
            if getattr(block, "type", None) == "text"
        )
        result = parse_extraction(text)
        logger.info(
            "Card text extracted",
            extra={"status": "empty" if result is None else "ok"},
        )
        return result

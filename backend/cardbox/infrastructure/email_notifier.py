"""SendGrid Notifier — delivers the "card found" email through the SendGrid v3 REST API.

Invariants:
    - notify() returns True only on a 2xx from SendGrid; it never raises for
      transport or API failures
    - Without an API key the message is logged and notify() returns False, so the
      card stays awaiting resolution and shows up in the staff queue

Design Decisions:
    - httpx over the SendGrid SDK: one POST, and tests swap in httpx.MockTransport
"""

import logging

import httpx

from cardbox.core.card import Card
from cardbox.core.format_messages import OwnerContact, compose_found_card_message

logger = logging.getLogger(__name__)

SENDGRID_API_URL = "https://api.sendgrid.com/v3/mail/send"


class SendGridNotifier:
    """Notifier implementation over SendGrid."""

    def __init__(
        self,
        api_key: str | None,
        from_email: str,
        *,
        api_url: str = SENDGRID_API_URL,
        timeout_seconds: float = 10.0,
        greeting_name: str = "Student",
        status_page_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._from_email = from_email
        self._api_url = api_url
        self._timeout = timeout_seconds
        self._greeting_name = greeting_name
        self._status_page_url = status_page_url
        self._http_client = http_client

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def notify(self, owner: OwnerContact, card: Card) -> bool:
        content = compose_found_card_message(
            owner, card,
            greeting_name=self._greeting_name,
            status_page_url=self._status_page_url,
        )
        if not self._api_key:
            logger.warning(
                f"SendGrid not configured - email for {owner.email} not sent:\n{content.text}",
                extra={"card_id": card.id},
            )
            return False

        payload = {
            "personalizations": [{"to": [{"email": owner.email}]}],
            "from": {"email": self._from_email},
            "subject": content.subject,
            "content": [
                {"type": "text/plain", "value": content.text},
                {"type": "text/html", "value": content.html},
            ],
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}
        try:
            response = await self._post(payload, headers)
        except httpx.HTTPError as e:
            logger.error(
                f"SendGrid request failed: {e}", extra={"card_id": card.id},
            )
            return False

        if response.is_success:
            logger.info(
                f"Email sent to {owner.email}", extra={"card_id": card.id},
            )
            return True
        logger.error(
            f"SendGrid rejected email to {owner.email}: "
            f"{response.status_code} {response.text[:500]}",
            extra={"card_id": card.id, "status": response.status_code},
        )
        return False

    async def _post(self, payload: dict, headers: dict) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.post(
                self._api_url, json=payload, headers=headers, timeout=self._timeout,
            )
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(self._api_url, json=payload, headers=headers)

"""Message Formatting — pure functions for owner emails and intake confirmations.

Invariants:
    - All functions are pure (no IO, no async)
    - Email variant chosen by card fields: box + code → pickup instructions;
      finder contact without box → contact arrangement; otherwise generic
    - Every owner email carries the reference code
    - HTML bodies escape all card-supplied text
"""

from dataclasses import dataclass
from html import escape

from cardbox.core.card import Card


EMAIL_SUBJECT = "Your campus ID card has been found!"
SIGNATURE = "Best regards,\nCampus Lost & Found"


@dataclass(frozen=True)
class OwnerContact:
    """Who the notification goes to."""
    email: str
    name: str | None = None


@dataclass(frozen=True)
class EmailContent:
    subject: str
    text: str
    html: str


def compose_found_card_message(
    owner: OwnerContact,
    card: Card,
    *,
    greeting_name: str = "Student",
    status_page_url: str | None = None,
) -> EmailContent:
    """Build the "card found" email for owner."""
    name = owner.name or greeting_name
    ref = card.reference_code

    if card.box_id and card.pickup_code:
        body = [
            "Great news! Your ID card has been found and is ready for pickup.",
            f"PICKUP LOCATION: {card.box_id}",
            f"PICKUP CODE: {card.pickup_code}",
            f"Please go to {card.box_id} and enter the pickup code "
            f"{card.pickup_code} to retrieve your card.",
        ]
    elif card.finder_contact:
        body = [
            "Your ID card has been found!",
            "The person who found your card has provided contact information:",
            card.finder_contact,
            "Please contact them to arrange pickup of your card.",
        ]
    else:
        body = ["Your ID card has been found!"]
        if status_page_url:
            body.append(f"Please check {status_page_url} for more details.")

    if card.dropoff_description:
        body.append(f"Drop-off location: {card.dropoff_description}")
    elif not card.box_id and not card.finder_contact:
        body.append("Drop-off location information not provided.")

    body.append(
        f"REFERENCE CODE: {ref} (use it to check your card status anytime)",
    )

    text = "\n\n".join([f"Hello {name},", *body, SIGNATURE])
    html = _render_html(name, body)
    return EmailContent(subject=EMAIL_SUBJECT, text=text, html=html)


def _render_html(name: str, paragraphs: list[str]) -> str:
    items = "\n".join(f"<p>{escape(p)}</p>" for p in paragraphs)
    signature = escape(SIGNATURE).replace("\n", "<br>")
    return (
        "<!DOCTYPE html>\n<html><body>\n"
        f"<p>Hello {escape(name)},</p>\n{items}\n<p>{signature}</p>\n"
        "</body></html>"
    )


def format_intake_message(
    card: Card, *, extracted_anything: bool,
) -> str:
    """Confirmation shown to the finder after a photo submission."""
    if extracted_anything:
        parts = ["Thanks! We extracted information from the card."]
    else:
        parts = ["Thanks! Your report has been recorded."]
    if card.identifier:
        parts.append(f"The card identifier is {card.identifier}.")
    if card.box_id and card.pickup_code:
        parts.append(
            f"The card is stored at {card.box_id}. Pickup code: {card.pickup_code}.",
        )
    parts.append(f"Your reference ID is {card.reference_code}.")
    return " ".join(parts)

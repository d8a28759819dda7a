"""Outgoing mails. Every function here is best effort: delivery failures are
logged and never propagate to the request that triggered them."""

from html import escape
from typing import Optional
import asyncio
import logging

from immobilien.config import settings
from immobilien.utils import email_utils

logger = logging.getLogger(__name__)


def _listing_summary(listing: Optional[dict]) -> str:
    if listing is None:
        return "Allgemeine Anfrage"
    return f"{listing['title']} ({listing['location']}, {listing['price']:,.0f} €)"


async def _deliver(to_email: str, subject: str, text: str, html: Optional[str] = None) -> bool:
    try:
        await email_utils.send_email(to_email, subject, text, html)
        return True
    except Exception:
        logger.error("Failed to send email '%s' to %s", subject, to_email, exc_info=True)
        return False


async def notify_inquiry_received(inquiry, listing: Optional[dict]) -> list[bool]:
    """Mail the office about a new inquiry and confirm receipt to the sender.

    ``inquiry`` and ``listing`` are detached snapshots; the request session is
    gone by the time this runs.
    """
    title = listing["title"] if listing is not None else "Allgemeine Anfrage"
    summary = _listing_summary(listing)

    admin_text = (
        f"Neue Anfrage von {inquiry.name} ({inquiry.email}) für {summary}:\n\n"
        f"{inquiry.message}\n\nTelefon: {inquiry.phone or '-'}"
    )
    admin_html = (
        f"<h2>Neue Immobilienanfrage</h2><p><strong>{escape(summary)}</strong></p>"
        f"<p>Name: {escape(inquiry.name)}<br>E-Mail: {escape(inquiry.email)}<br>"
        f"Telefon: {escape(inquiry.phone or '-')}</p><p>{escape(inquiry.message)}</p>"
    )
    confirmation_text = (
        f"Hallo {inquiry.name},\n\nvielen Dank für Ihre Anfrage zu {summary}. "
        "Wir melden uns so schnell wie möglich bei Ihnen.\n\nIhr Team von Immobilien Ghumman"
    )
    confirmation_html = (
        f"<p>Hallo {escape(inquiry.name)},</p><p>vielen Dank für Ihre Anfrage zu "
        f"<strong>{escape(summary)}</strong>. Wir melden uns so schnell wie möglich "
        "bei Ihnen.</p><p>Ihr Team von Immobilien Ghumman</p>"
    )

    return await asyncio.gather(
        _deliver(
            settings.ADMIN_EMAIL,
            f"Neue Immobilienanfrage: {title}",
            admin_text,
            admin_html,
        ),
        _deliver(
            inquiry.email,
            f"Ihre Anfrage zu: {title}",
            confirmation_text,
            confirmation_html,
        ),
    )


async def notify_general_contact(contact) -> bool:
    text = (
        f"Kontaktanfrage von {contact.name} ({contact.email}, "
        f"Telefon: {contact.phone or '-'})\n\nBetreff: {contact.subject}\n\n{contact.message}"
    )
    return await _deliver(settings.ADMIN_EMAIL, f"Kontaktformular: {contact.subject}", text)


async def send_welcome_email(user) -> bool:
    text = (
        f"Hallo {user.full_name or user.username},\n\n"
        f"Ihr Konto bei Immobilien Ghumman wurde angelegt. Benutzername: {user.username}\n\n"
        "Ihr Team von Immobilien Ghumman"
    )
    return await _deliver(user.email, "Willkommen bei Immobilien Ghumman", text)

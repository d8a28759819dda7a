from email.message import EmailMessage
from typing import Optional
import logging

from aiosmtplib import send

from immobilien.config import settings

logger = logging.getLogger(__name__)


async def send_email(to_email: str, subject: str, text: str, html: Optional[str] = None):
    # Safety check: don't send emails in test mode
    if settings.TESTING:
        logger.info("[TEST MODE] Email to %s not sent: %s", to_email, subject)
        return

    message = EmailMessage()
    message["From"] = settings.EMAIL_FROM
    message["To"] = to_email
    message["Subject"] = subject
    message.set_content(text)
    if html:
        message.add_alternative(html, subtype="html")

    await send(
        message,
        hostname=settings.EMAIL_HOST,
        port=settings.EMAIL_PORT,
        username=settings.EMAIL_USERNAME,
        password=settings.EMAIL_PASSWORD,
        start_tls=True,
    )

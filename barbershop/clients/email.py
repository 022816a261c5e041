"""
Transactional email senders.

``ResendEmailSender`` delivers through the Resend SDK. ``ConsoleEmailSender``
logs messages and keeps them in an outbox; it is used offline and in tests.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import resend

from barbershop.clients.errors import EmailDeliveryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    sender: str
    to: list[str]
    subject: str
    html: str


class EmailSender(Protocol):
    async def send(self, message: EmailMessage) -> None: ...


class ResendEmailSender:
    """Sends email through the Resend API."""

    def __init__(self, api_key: str) -> None:
        if not api_key:
            raise ValueError("A Resend API key is required")
        resend.api_key = api_key

    async def send(self, message: EmailMessage) -> None:
        params: dict[str, Any] = {
            "from": message.sender,
            "to": message.to,
            "subject": message.subject,
            "html": message.html,
        }
        try:
            # The SDK call blocks; keep it off the event loop.
            response = await asyncio.to_thread(resend.Emails.send, params)
        except Exception as exc:
            logger.error("Email send error to %s: %s", message.to, exc)
            raise EmailDeliveryError(f"Failed to send email: {exc}") from exc
        logger.info("Email '%s' sent to %s: %s", message.subject, message.to, response)


class ConsoleEmailSender:
    """Logs outgoing mail and records it instead of delivering it."""

    def __init__(self) -> None:
        self.outbox: list[EmailMessage] = []

    async def send(self, message: EmailMessage) -> None:
        self.outbox.append(message)
        logger.info("Email (not delivered) '%s' to %s", message.subject, message.to)

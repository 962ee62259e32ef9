"""
Outbound channel senders

Every sender follows the same contract: send(contact, subject_or_none, body) -> bool.
Email is delivered through an HTTP email API; SMS and WhatsApp are stubs that
report success without sending anything.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from app.config import settings
from app.services.templates import Channel

logger = logging.getLogger(__name__)

SendFunction = Callable[[str, Optional[str], str], bool]

@dataclass(frozen=True)
class ChannelSender:
    """A channel slot: its send function, whether it really sends, and the recipient field it needs"""
    channel: Channel
    send: SendFunction
    real: bool
    contact_field: str

class HttpEmailSender:
    """
    Sends email through a JSON HTTP API (Resend-compatible payload).

    Without an API key the message is only logged, which keeps local
    development free of outbound traffic.
    """

    def __init__(
        self,
        api_url: str,
        api_key: Optional[str],
        sender: str,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout
        self._client = client

    def __call__(self, to: str, subject: Optional[str], body: str) -> bool:
        if not self.api_key:
            logger.info(f"Email delivery not configured, would send to {to}: {subject}")
            return True

        payload = {
            "from": self.sender,
            "to": [to],
            "subject": subject or "",
            "html": body,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        if self._client is not None:
            response = self._client.post(self.api_url, json=payload, headers=headers, timeout=self.timeout)
        else:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self.api_url, json=payload, headers=headers)

        if response.is_success:
            logger.info(f"Email sent to {to}: {subject}")
            return True

        logger.warning(f"Email API rejected message to {to}: HTTP {response.status_code}")
        return False

def stub_sender(channel: Channel) -> SendFunction:
    """A send function that performs no delivery and always reports success"""
    def send(to: str, subject: Optional[str], body: str) -> bool:
        logger.debug(f"{channel.value} stub: message to {to} not sent")
        return True
    return send

def default_senders() -> dict[Channel, ChannelSender]:
    """Channel slots wired from application settings"""
    email = HttpEmailSender(
        api_url=settings.email_api_url,
        api_key=settings.email_api_key,
        sender=settings.email_from,
        timeout=settings.email_timeout_seconds,
    )
    return {
        Channel.EMAIL: ChannelSender(Channel.EMAIL, email, real=True, contact_field="email"),
        Channel.SMS: ChannelSender(Channel.SMS, stub_sender(Channel.SMS), real=False, contact_field="phone"),
        Channel.WHATSAPP: ChannelSender(
            Channel.WHATSAPP, stub_sender(Channel.WHATSAPP), real=False, contact_field="phone"
        ),
    }

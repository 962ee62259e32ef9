"""
Notification dispatcher: picks a template, renders it and hands it to one channel
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Mapping, Optional

from app.config import settings
from app.models.user import User
from app.services.channels import ChannelSender, default_senders
from app.services.templates import (
    DEFAULT_TEMPLATES,
    Channel,
    NotificationEvent,
    NotificationTemplate,
    missing_placeholders,
    render,
)
from app.utils.error_handler import UnknownTemplate

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class Recipient:
    """Contact details for whoever receives a notification"""
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "Recipient":
        return cls(name=user.full_name or user.username, email=user.email, phone=user.phone_number)

    def contact(self, field: str) -> Optional[str]:
        return getattr(self, field, None) or None

class NotificationDispatcher:
    """Renders event templates and sends them through a configured channel"""

    def __init__(
        self,
        templates: Mapping[NotificationEvent, NotificationTemplate],
        senders: Mapping[Channel, ChannelSender],
        default_channel: Channel = Channel.EMAIL,
    ):
        self.templates = templates
        self.senders = dict(senders)
        self.default_channel = default_channel

    def dispatch(
        self,
        event: NotificationEvent,
        recipient: Recipient,
        data: Mapping[str, Any],
        channel: Optional[Channel] = None,
    ) -> bool:
        """
        Send one notification for an event.

        Returns the channel-level success flag. Transport failures are logged
        and reported as False, never raised. A recipient without the contact
        field the channel needs is skipped (False). Raises UnknownTemplate when
        the event has no template.
        """
        template = self.templates.get(event)
        if template is None:
            raise UnknownTemplate(event)

        channel = channel or self.default_channel
        sender = self.senders.get(channel)
        if sender is None:
            logger.warning(f"No sender configured for channel {channel.value}, skipping {event.value}")
            return False

        contact = recipient.contact(sender.contact_field)
        if not contact:
            logger.info(
                f"Recipient {recipient.name} has no {sender.contact_field}, skipping {channel.value} for {event.value}"
            )
            return False

        body_template = template.body_for(channel)
        missing = missing_placeholders(body_template, data)
        if missing:
            logger.warning(f"Template {event.value}/{channel.value} rendered without: {', '.join(missing)}")

        subject = template.subject_for(channel)
        if subject is not None:
            subject = render(subject, data)
        body = render(body_template, data)

        try:
            delivered = bool(sender.send(contact, subject, body))
        except Exception as e:
            logger.error(f"{channel.value} delivery of {event.value} to {contact} failed: {e}")
            return False

        if not delivered:
            logger.warning(f"{channel.value} delivery of {event.value} to {contact} reported failure")
        elif sender.real:
            logger.info(f"Sent {event.value} via {channel.value} to {contact}")
        return delivered

@lru_cache(maxsize=1)
def get_dispatcher() -> NotificationDispatcher:
    """Application-wide dispatcher dependency"""
    return NotificationDispatcher(
        templates=DEFAULT_TEMPLATES,
        senders=default_senders(),
        default_channel=Channel(settings.notification_channel),
    )

"""
Notification events, message templates and the placeholder renderer
"""

import enum
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping, Optional

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*(\w+)\s*\}\}")

class NotificationEvent(str, enum.Enum):
    ORDER_CONFIRMED = "ORDER_CONFIRMED"
    SAMPLE_COLLECTION_SCHEDULED = "SAMPLE_COLLECTION_SCHEDULED"
    SAMPLE_COLLECTED = "SAMPLE_COLLECTED"
    ORDER_PROCESSING = "ORDER_PROCESSING"
    REPORT_READY = "REPORT_READY"
    ORDER_COMPLETED = "ORDER_COMPLETED"
    ORDER_CANCELLED = "ORDER_CANCELLED"
    HOME_VISIT_SCHEDULED = "HOME_VISIT_SCHEDULED"
    HOME_VISIT_REMINDER = "HOME_VISIT_REMINDER"

class Channel(str, enum.Enum):
    EMAIL = "email"
    SMS = "sms"
    WHATSAPP = "whatsapp"

@dataclass(frozen=True)
class NotificationTemplate:
    """Message bodies for one event, one per channel"""
    subject: str
    email: str
    sms: str
    whatsapp: str

    def body_for(self, channel: Channel) -> str:
        return getattr(self, channel.value)

    def subject_for(self, channel: Channel) -> Optional[str]:
        # Only email carries a subject line
        return self.subject if channel is Channel.EMAIL else None

def render(template: str, data: Mapping[str, Any]) -> str:
    """
    Substitute {{key}} placeholders with stringified values from data.

    Placeholders without a matching key (or with a None value) render as the
    empty string. Values are inserted as-is, without any escaping.
    """
    def substitute(match: re.Match) -> str:
        value = data.get(match.group(1))
        return "" if value is None else str(value)

    return PLACEHOLDER_PATTERN.sub(substitute, template)

def missing_placeholders(template: str, data: Mapping[str, Any]) -> list[str]:
    """Placeholder keys in template that data cannot fill"""
    keys = []
    for key in PLACEHOLDER_PATTERN.findall(template):
        if data.get(key) is None and key not in keys:
            keys.append(key)
    return keys

_TEMPLATES = {
    NotificationEvent.ORDER_CONFIRMED: NotificationTemplate(
        subject="Order Confirmed - {{orderNumber}}",
        email=(
            "<h2>Order Confirmed!</h2>"
            "<p>Hi {{customerName}},</p>"
            "<p>Your order <strong>{{orderNumber}}</strong> has been confirmed.</p>"
            "<p><strong>Total Amount:</strong> ₹{{amount}}</p>"
            "<p><strong>Tests Ordered:</strong></p>"
            "<ul>{{testsList}}</ul>"
            '<p>Track your order: <a href="{{trackingUrl}}">{{trackingUrl}}</a></p>'
            "<p>Thank you for choosing Lynk Labs!</p>"
        ),
        sms=(
            "Hi {{customerName}}, your order {{orderNumber}} has been confirmed! "
            "Total: ₹{{amount}}. Track your order at {{trackingUrl}}"
        ),
        whatsapp=(
            "Order Confirmed!\n\nHi {{customerName}}, your order {{orderNumber}} has been confirmed!\n\n"
            "Total: ₹{{amount}}\nTests: {{testsCount}} test(s)\n\nTrack: {{trackingUrl}}"
        ),
    ),
    NotificationEvent.SAMPLE_COLLECTION_SCHEDULED: NotificationTemplate(
        subject="Sample Collection Scheduled - {{orderNumber}}",
        email=(
            "<h2>Sample Collection Scheduled</h2>"
            "<p>Hi {{customerName}},</p>"
            "<p>Sample collection for your order <strong>{{orderNumber}}</strong> has been scheduled.</p>"
            "<p><strong>Date & Time:</strong> {{date}} at {{time}}</p>"
            "<p><strong>Agent:</strong> {{agentName}} ({{agentPhone}})</p>"
            "<p><strong>Address:</strong> {{address}}</p>"
            "<p>Please ensure you're available at the scheduled time.</p>"
        ),
        sms=(
            "Sample collection for order {{orderNumber}} is scheduled on {{date}} at {{time}}. "
            "Agent: {{agentName}} ({{agentPhone}})"
        ),
        whatsapp=(
            "Sample Collection Scheduled\n\nOrder: {{orderNumber}}\nDate: {{date}} at {{time}}\n"
            "Agent: {{agentName}} ({{agentPhone}})\n\nPlease be available!"
        ),
    ),
    NotificationEvent.SAMPLE_COLLECTED: NotificationTemplate(
        subject="Sample Collected - {{orderNumber}}",
        email=(
            "<h2>Sample Collected Successfully!</h2>"
            "<p>Hi {{customerName}},</p>"
            "<p>Sample for order <strong>{{orderNumber}}</strong> has been collected successfully.</p>"
            "<p><strong>Expected Report Time:</strong> {{reportTime}}</p>"
            "<p>We'll notify you as soon as your reports are ready.</p>"
        ),
        sms=(
            "Sample collected successfully for order {{orderNumber}}! Your reports will be ready in "
            "{{reportTime}}. We'll notify you once ready."
        ),
        whatsapp=(
            "Sample Collected!\n\nOrder: {{orderNumber}}\nReports expected in: {{reportTime}}\n\n"
            "We'll notify you once ready!"
        ),
    ),
    NotificationEvent.ORDER_PROCESSING: NotificationTemplate(
        subject="Samples In Processing - {{orderNumber}}",
        email=(
            "<h2>Your Samples Are Being Processed</h2>"
            "<p>Hi {{customerName}},</p>"
            "<p>The lab has started processing the samples for order <strong>{{orderNumber}}</strong>.</p>"
            "<p><strong>Expected Report Time:</strong> {{reportTime}}</p>"
            '<p>Track your order: <a href="{{trackingUrl}}">{{trackingUrl}}</a></p>'
        ),
        sms="Samples for order {{orderNumber}} are being processed. Track: {{trackingUrl}}",
        whatsapp="Processing Started\n\nOrder: {{orderNumber}}\nReports expected in: {{reportTime}}\n\nTrack: {{trackingUrl}}",
    ),
    NotificationEvent.REPORT_READY: NotificationTemplate(
        subject="Test Reports Ready - {{orderNumber}}",
        email=(
            "<h2>Your Test Reports Are Ready!</h2>"
            "<p>Hi {{customerName}},</p>"
            "<p>Your test reports for order <strong>{{orderNumber}}</strong> are now available.</p>"
            '<p><strong>Download Reports:</strong> <a href="{{reportUrl}}">Click here to download</a></p>'
            "<p>You can also view your reports in our mobile app or website.</p>"
            "<p>If you have any questions about your results, please consult with your healthcare provider.</p>"
        ),
        sms=(
            "Your test reports are ready! Order {{orderNumber}}. Download: {{reportUrl}} "
            "or visit our app to view your results."
        ),
        whatsapp=(
            "Reports Ready!\n\nYour test reports for order {{orderNumber}} are ready!\n\n"
            "Download: {{reportUrl}}\n\nConsult your doctor for any questions about results."
        ),
    ),
    NotificationEvent.ORDER_COMPLETED: NotificationTemplate(
        subject="Order Completed - {{orderNumber}}",
        email=(
            "<h2>Order Completed Successfully!</h2>"
            "<p>Hi {{customerName}},</p>"
            "<p>Your order <strong>{{orderNumber}}</strong> has been completed successfully.</p>"
            "<p>Thank you for choosing Lynk Labs for your diagnostic needs.</p>"
            '<p><strong>Rate your experience:</strong> <a href="{{ratingUrl}}">Share your feedback</a></p>'
            "<p>We look forward to serving you again!</p>"
        ),
        sms=(
            "Order {{orderNumber}} completed successfully! Thank you for choosing Lynk Labs. "
            "Rate your experience: {{ratingUrl}}"
        ),
        whatsapp=(
            "Order Completed!\n\nThank you {{customerName}}! Order {{orderNumber}} is complete.\n\n"
            "Rate us: {{ratingUrl}}"
        ),
    ),
    NotificationEvent.ORDER_CANCELLED: NotificationTemplate(
        subject="Order Cancelled - {{orderNumber}}",
        email=(
            "<h2>Order Cancelled</h2>"
            "<p>Hi {{customerName}},</p>"
            "<p>Your order <strong>{{orderNumber}}</strong> has been cancelled.</p>"
            "<p><strong>Refund:</strong> Will be processed within 3-5 business days</p>"
            "<p>If you have any questions, please contact our support team at {{supportPhone}}</p>"
        ),
        sms=(
            "Order {{orderNumber}} has been cancelled. Refund will be processed within 3-5 business days. "
            "Contact support: {{supportPhone}}"
        ),
        whatsapp=(
            "Order Cancelled\n\nOrder {{orderNumber}} cancelled.\nRefund: 3-5 business days\n\n"
            "Support: {{supportPhone}}"
        ),
    ),
    NotificationEvent.HOME_VISIT_SCHEDULED: NotificationTemplate(
        subject="Home Visit Scheduled - {{orderNumber}}",
        email=(
            "<h2>Home Visit Scheduled</h2>"
            "<p>Hi {{customerName}},</p>"
            "<p>Your home visit has been scheduled for <strong>{{date}} at {{time}}</strong></p>"
            "<p><strong>Agent:</strong> {{agentName}} ({{agentPhone}})</p>"
            "<p><strong>Address:</strong> {{address}}</p>"
        ),
        sms=(
            "Home visit scheduled for {{date}} at {{time}}. Agent {{agentName}} will visit {{address}}. "
            "Contact: {{agentPhone}}"
        ),
        whatsapp=(
            "Home Visit Scheduled\n\nDate: {{date}} at {{time}}\nAgent: {{agentName}} ({{agentPhone}})\n"
            "Address: {{address}}"
        ),
    ),
    NotificationEvent.HOME_VISIT_REMINDER: NotificationTemplate(
        subject="Home Visit Reminder - {{date}}",
        email=(
            "<h2>Home Visit Reminder</h2>"
            "<p>Hi {{customerName}},</p>"
            "<p>This is a reminder that your home visit is scheduled for {{date}} at <strong>{{time}}</strong></p>"
            "<p><strong>Agent:</strong> {{agentName}} ({{agentPhone}})</p>"
        ),
        sms="Reminder: Home visit on {{date}} at {{time}}. Agent {{agentName}} will arrive soon. Contact: {{agentPhone}}",
        whatsapp="Reminder: Home visit on {{date}} at {{time}}\nAgent: {{agentName}} ({{agentPhone}})\nPlease be available!",
    ),
}

# Read-only event -> template mapping handed to the dispatcher
DEFAULT_TEMPLATES: Mapping[NotificationEvent, NotificationTemplate] = MappingProxyType(_TEMPLATES)

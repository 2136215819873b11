"""
Email delivery (AWS SES) for password reset.
"""

from .client import (
    EmailClient,
    EmailDeliveryError,
    EmailMessage,
    MockEmailClient,
    SesEmailClient,
    create_email_client,
    otp_message,
    password_changed_message,
)

__all__ = [
    "EmailClient",
    "EmailDeliveryError",
    "EmailMessage",
    "MockEmailClient",
    "SesEmailClient",
    "create_email_client",
    "otp_message",
    "password_changed_message",
]

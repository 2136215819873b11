"""
Transactional email via AWS SES.

The platform sends two messages, both part of password reset: the
one-time code, and a confirmation once the password has changed. Mock
mode keeps sent messages in an in-memory outbox so tests can read the
code a user would have received.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

CHARSET = "UTF-8"


class EmailDeliveryError(Exception):
    """Raised when an email could not be handed to the provider."""
    pass


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str
    text: str


def otp_message(to: str, code: str, ttl_minutes: int) -> EmailMessage:
    subject = "Your SportsTalent password reset code"
    text = (
        f"Your password reset code is {code}.\n\n"
        f"It expires in {ttl_minutes} minutes. If you did not ask to reset "
        "your password you can ignore this email."
    )
    html = (
        "<h2>Password reset</h2>"
        f"<p>Your password reset code is:</p><p style=\"font-size:24px\"><b>{code}</b></p>"
        f"<p>It expires in {ttl_minutes} minutes. If you did not ask to reset "
        "your password you can ignore this email.</p>"
    )
    return EmailMessage(to=to, subject=subject, html=html, text=text)


def password_changed_message(to: str, name: str) -> EmailMessage:
    when = datetime.now(timezone.utc).strftime("%d %b %Y %H:%M UTC")
    subject = "Your SportsTalent password was changed"
    text = (
        f"Hi {name},\n\nYour password was reset on {when}. "
        "If this was not you, contact support immediately."
    )
    html = (
        f"<p>Hi {name},</p><p>Your password was reset on {when}.</p>"
        "<p>If this was not you, contact support immediately.</p>"
    )
    return EmailMessage(to=to, subject=subject, html=html, text=text)


class EmailClient(Protocol):
    """Protocol for sending email."""

    def send(self, message: EmailMessage) -> str:
        """Send a message. Returns the provider's message id."""
        ...


class SesEmailClient:
    """Sends email through AWS SES with boto3."""

    def __init__(self, sender: str, region: str) -> None:
        import boto3

        self._sender = sender
        self._ses = boto3.client('ses', region_name=region)
        logger.info("Initialized SES email client", extra={"region": region})

    def send(self, message: EmailMessage) -> str:
        from botocore.exceptions import ClientError

        try:
            response = self._ses.send_email(
                Source=self._sender,
                Destination={'ToAddresses': [message.to]},
                Message={
                    'Subject': {'Data': message.subject, 'Charset': CHARSET},
                    'Body': {
                        'Html': {'Data': message.html, 'Charset': CHARSET},
                        'Text': {'Data': message.text, 'Charset': CHARSET},
                    }
                }
            )
        except ClientError as e:
            error_code = e.response['Error']['Code']
            logger.error(
                "SES rejected email",
                extra={"subject": message.subject, "error_code": error_code}
            )
            raise EmailDeliveryError(f"AWS SES error ({error_code}): {e.response['Error']['Message']}")

        logger.info("Sent email", extra={"subject": message.subject})
        return response['MessageId']


class MockEmailClient:
    """Records messages instead of sending them."""

    def __init__(self) -> None:
        self.outbox: list[EmailMessage] = []
        logger.info("Initialized mock email client")

    def send(self, message: EmailMessage) -> str:
        self.outbox.append(message)
        logger.debug("Recorded email in mock outbox", extra={"subject": message.subject})
        return f"mock-{len(self.outbox)}"

    def last_to(self, address: str) -> Optional[EmailMessage]:
        for message in reversed(self.outbox):
            if message.to == address:
                return message
        return None


def create_email_client(
    sender: Optional[str] = None,
    region: str = "ap-south-1",
    mock_mode: bool = False,
) -> EmailClient:
    if mock_mode:
        return MockEmailClient()

    if not sender:
        raise ValueError("sender is required when not in mock mode")

    return SesEmailClient(sender, region)

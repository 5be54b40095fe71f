"""
Email delivery of rendered shipping instructions.

Messages carry the rendered HTML as their body and the PDF as a single
attachment. Two relay transports are supported:

- ``smtp``: authenticated SMTP (implicit TLS by default, STARTTLS otherwise)
- ``ses``: Amazon SES ``send_raw_email`` using the ambient AWS credentials

Delivery is synchronous from the caller's point of view and is never
retried; any transport failure is raised as ``DeliveryError``.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .configuration import MailSettings
from .errors import DeliveryError
from .models import ShippingSubmission

logger = logging.getLogger(__name__)

SUPPORTED_TRANSPORTS = ("smtp", "ses")


class DeliveryDispatcher:
    """Composes and sends the submission email through the configured relay."""

    def __init__(self, settings: MailSettings) -> None:
        if settings.transport not in SUPPORTED_TRANSPORTS:
            raise ValueError(f"Unsupported mail transport '{settings.transport}'; expected one of {SUPPORTED_TRANSPORTS}")
        self.settings = settings

    @property
    def sender(self) -> str:
        address = self.settings.sender_address or self.settings.user
        return formataddr((self.settings.sender_name, address))

    def resolve_recipient(self, submission: ShippingSubmission) -> str:
        """
        Pick the submitter's email, or the configured fallback when it is blank.

        Raises:
            DeliveryError: If neither address is available
        """
        user_email = submission.user.email if submission.user else None
        if user_email and str(user_email).strip():
            return str(user_email).strip()
        if self.settings.fallback_recipient:
            return self.settings.fallback_recipient
        raise DeliveryError("No recipient: submission has no user email and no fallback recipient is configured")

    def compose_message(self, recipient: str, html_body: str, attachment: bytes) -> MIMEMultipart:
        message = MIMEMultipart("mixed")
        message["From"] = self.sender
        message["To"] = recipient
        message["Subject"] = self.settings.subject
        message.attach(MIMEText(html_body, "html", "utf-8"))

        document = MIMEApplication(attachment, _subtype="pdf")
        document.add_header("Content-Disposition", "attachment", filename=self.settings.attachment_name)
        message.attach(document)
        return message

    def _send_smtp(self, message: MIMEMultipart) -> None:
        settings = self.settings
        if settings.use_ssl:
            server = smtplib.SMTP_SSL(settings.host, settings.port, timeout=settings.timeout_seconds)
        else:
            server = smtplib.SMTP(settings.host, settings.port, timeout=settings.timeout_seconds)
        with server:
            if not settings.use_ssl:
                server.starttls()
            if settings.user:
                server.login(settings.user, settings.password)
            server.send_message(message)

    def _send_ses(self, message: MIMEMultipart, recipient: str) -> None:
        client = boto3.client("ses", region_name=self.settings.aws_region)
        client.send_raw_email(
            Source=self.sender,
            Destinations=[recipient],
            RawMessage={"Data": message.as_bytes()},
        )

    async def deliver(self, recipient: str, html_body: str, attachment: bytes) -> None:
        """
        Send the document email and return once the relay has accepted it.

        Raises:
            DeliveryError: Wrapping any SMTP, SES or connection failure
        """
        message = self.compose_message(recipient, html_body, attachment)
        logger.info(f"Sending shipping instruction to {recipient} via {self.settings.transport}")
        try:
            if self.settings.transport == "ses":
                await asyncio.to_thread(self._send_ses, message, recipient)
            else:
                await asyncio.to_thread(self._send_smtp, message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error(f"SMTP delivery to {recipient} failed: {exc}")
            raise DeliveryError(f"Email delivery failed: {exc}") from exc
        except (ClientError, BotoCoreError) as exc:
            logger.error(f"SES delivery to {recipient} failed: {exc}")
            raise DeliveryError(f"Email delivery failed: {exc}") from exc
        logger.info(f"Shipping instruction delivered to {recipient}")

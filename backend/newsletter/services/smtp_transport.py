"""
Newsletter Backend — SMTP Email Transport
===========================================

What:  EmailTransport implementation on top of aiosmtplib.
Why:   Non-blocking SMTP keeps a slow mail server from stalling the event
       loop while other requests are served.
How:   Builds a multipart/alternative EmailMessage (text + HTML), omits the
       Bcc header, and passes the full envelope recipient list to
       aiosmtplib.send() so blind recipients never see each other.

TLS:
    Port 465 → implicit TLS (smtp_use_tls=True)
    Port 587 → plain connect upgraded with STARTTLS (smtp_start_tls=True)

There is no retry: a failed send is reported once as TransportError and the
dispatcher turns it into a failure outcome.
"""

import logging
from email.message import EmailMessage
from email.utils import formatdate, make_msgid, parseaddr
from typing import Optional

import aiosmtplib

from newsletter.config import Settings, settings as default_settings
from newsletter.exceptions import TransportError
from newsletter.services.transport_base import EmailTransport, OutboundEmail

logger = logging.getLogger(__name__)


def build_mime_message(message: OutboundEmail) -> EmailMessage:
    """Render OutboundEmail into a MIME message without a Bcc header."""
    mime = EmailMessage()
    mime["From"] = message.from_address
    mime["To"] = message.to
    mime["Subject"] = message.subject
    mime["Date"] = formatdate(localtime=False)
    domain = parseaddr(message.from_address)[1].rpartition("@")[2] or None
    mime["Message-ID"] = make_msgid(domain=domain)
    mime.set_content(message.text)
    mime.add_alternative(message.html, subtype="html")
    return mime


class SMTPTransport(EmailTransport):
    """Sends through one SMTP server configured in Settings."""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings

    @property
    def is_configured(self) -> bool:
        return bool(self.config.smtp_host and self.config.smtp_username and self.config.smtp_password)

    async def send(self, message: OutboundEmail) -> str:
        sender = parseaddr(message.from_address)[1] or message.from_address
        start_tls = self.config.smtp_start_tls

        try:
            mime = build_mime_message(message)
        except ValueError as e:
            # email.message rejects header values containing CR/LF
            logger.error("Could not build MIME message: %s", str(e))
            raise TransportError(
                message="Failed to build notification message",
                context={"error_type": type(e).__name__},
            ) from e

        try:
            _, response = await aiosmtplib.send(
                mime,
                sender=sender,
                recipients=message.envelope_recipients,
                hostname=self.config.smtp_host,
                port=self.config.smtp_port,
                username=self.config.smtp_username or None,
                password=self.config.smtp_password or None,
                use_tls=self.config.smtp_use_tls and not start_tls,
                start_tls=start_tls,
                timeout=self.config.smtp_timeout,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(
                "SMTP send to %d recipients failed: %s",
                len(message.envelope_recipients),
                str(e),
            )
            raise TransportError(
                context={"error_type": type(e).__name__, "host": self.config.smtp_host},
            ) from e

        message_id = mime["Message-ID"]
        logger.info("SMTP accepted message %s (%s)", message_id, response)
        return message_id

"""
Newsletter Backend — SMTP Transport Unit Tests (Mocked)
=========================================================

What:  SMTPTransport with aiosmtplib.send patched out (no network).

What we test:
    ✅ Bcc recipients are in the SMTP envelope but not in the headers
    ✅ TLS flags follow configuration
    ✅ aiosmtplib / socket errors surface as TransportError
"""

from unittest.mock import AsyncMock, patch

import aiosmtplib
import pytest

from newsletter.config import settings
from newsletter.exceptions import TransportError
from newsletter.services.smtp_transport import SMTPTransport, build_mime_message
from newsletter.services.transport_base import OutboundEmail

MESSAGE = OutboundEmail(
    from_address='"Example News" <news@example.com>',
    to="news@example.com",
    bcc=["a@example.com", "b@example.com"],
    subject="New Blog Published: Hello",
    html="<p>Hello</p>",
    text="Hello",
)


class TestBuildMimeMessage:

    def test_headers_hide_bcc(self):
        mime = build_mime_message(MESSAGE)

        assert mime["To"] == "news@example.com"
        assert mime["Bcc"] is None
        assert "a@example.com" not in mime.as_string()

    def test_multipart_alternative_with_both_bodies(self):
        mime = build_mime_message(MESSAGE)

        assert mime.get_content_type() == "multipart/alternative"
        types = [part.get_content_type() for part in mime.iter_parts()]
        assert types == ["text/plain", "text/html"]

    def test_message_id_uses_sender_domain(self):
        mime = build_mime_message(MESSAGE)

        assert mime["Message-ID"].endswith("@example.com>")


class TestSMTPTransportSend:

    @pytest.mark.asyncio
    async def test_send_uses_full_envelope(self):
        transport = SMTPTransport()
        with patch("newsletter.services.smtp_transport.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            mock_send.return_value = ({}, "250 OK")

            message_id = await transport.send(MESSAGE)

        mock_send.assert_awaited_once()
        kwargs = mock_send.await_args.kwargs
        assert kwargs["recipients"] == ["news@example.com", "a@example.com", "b@example.com"]
        assert kwargs["sender"] == "news@example.com"
        assert kwargs["hostname"] == "smtp.example.com"
        assert kwargs["use_tls"] is True
        assert kwargs["start_tls"] is False
        assert message_id.startswith("<")

    @pytest.mark.asyncio
    async def test_start_tls_disables_implicit_tls(self):
        config = settings.model_copy(update={"smtp_port": 587, "smtp_start_tls": True})
        transport = SMTPTransport(config)
        with patch("newsletter.services.smtp_transport.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            mock_send.return_value = ({}, "250 OK")
            await transport.send(MESSAGE)

        kwargs = mock_send.await_args.kwargs
        assert kwargs["use_tls"] is False
        assert kwargs["start_tls"] is True
        assert kwargs["port"] == 587

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            aiosmtplib.SMTPRecipientsRefused([]),
            aiosmtplib.SMTPConnectError("connection refused"),
            ConnectionResetError("reset"),
        ],
    )
    async def test_errors_become_transport_error(self, error):
        transport = SMTPTransport()
        with patch(
            "newsletter.services.smtp_transport.aiosmtplib.send",
            new_callable=AsyncMock,
            side_effect=error,
        ):
            with pytest.raises(TransportError) as exc_info:
                await transport.send(MESSAGE)

        assert exc_info.value.context["error_type"] == type(error).__name__

    @pytest.mark.asyncio
    async def test_header_with_line_break_becomes_transport_error(self):
        transport = SMTPTransport()
        broken = MESSAGE.model_copy(update={"subject": "Hello\r\nBcc: everyone@example.com"})

        with patch("newsletter.services.smtp_transport.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            with pytest.raises(TransportError) as exc_info:
                await transport.send(broken)

        mock_send.assert_not_awaited()
        assert exc_info.value.context["error_type"] == "ValueError"

    def test_is_configured(self):
        assert SMTPTransport().is_configured is True
        blank = settings.model_copy(update={"smtp_password": ""})
        assert SMTPTransport(blank).is_configured is False

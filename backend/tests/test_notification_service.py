"""
Newsletter Backend — Notification Fan-out Tests
=================================================

What we test:
    ✅ No active subscribers → success=False and no transport call
    ✅ One transport call, every active subscriber in Bcc, sender in To
    ✅ Unsubscribed addresses are never notified
    ✅ Transport failure → success=False, no retry
    ✅ Optional fixed-size batching
    ✅ Rendered subject, link and escaping
"""

from unittest.mock import AsyncMock, patch

import pytest

from newsletter.config import settings
from newsletter.schemas.subscriber import NotificationJob, PublishedContent
from newsletter.services.notification_service import NotificationService, single_line
from newsletter.services.smtp_transport import SMTPTransport

CONTENT = PublishedContent(
    title="Scaling Postgres",
    slug="scaling-postgres",
    excerpt="Lessons from a year of growth.",
    image="https://cdn.example.com/pg.png",
)


async def subscribe_all(subscription_service, *emails):
    for email in emails:
        await subscription_service.subscribe(email)


class TestFanOut:

    @pytest.mark.asyncio
    async def test_no_recipients_short_circuits(self, notification_service, fake_transport):
        result = await notification_service.notify_subscribers(CONTENT)

        assert result.success is False
        assert result.reason == "no_recipients"
        assert fake_transport.sent == []

    @pytest.mark.asyncio
    async def test_only_unsubscribed_counts_as_no_recipients(
        self, notification_service, subscription_service, fake_transport
    ):
        await subscribe_all(subscription_service, "a@example.com")
        await subscription_service.unsubscribe("a@example.com")

        result = await notification_service.notify_subscribers(CONTENT)

        assert result.success is False
        assert fake_transport.sent == []

    @pytest.mark.asyncio
    async def test_single_call_with_all_active_in_bcc(
        self, notification_service, subscription_service, fake_transport
    ):
        await subscribe_all(subscription_service, "a@example.com", "b@example.com", "c@example.com")
        await subscription_service.unsubscribe("b@example.com")

        result = await notification_service.notify_subscribers(CONTENT)

        assert result.success is True
        assert result.recipient_count == 2
        assert result.batches_sent == 1
        assert len(fake_transport.sent) == 1
        message = fake_transport.sent[0]
        assert message.to == settings.sender_email
        assert sorted(message.bcc) == ["a@example.com", "c@example.com"]
        assert message.from_address == settings.sender_identity

    @pytest.mark.asyncio
    async def test_transport_failure_reports_failure(
        self, notification_service, subscription_service, fake_transport
    ):
        await subscribe_all(subscription_service, "a@example.com")
        fake_transport.fail = True

        result = await notification_service.notify_subscribers(CONTENT)

        assert result.success is False
        assert result.reason == "transport_error"
        assert result.batches_sent == 0


class TestBatching:

    def _service(self, store, transport, batch_size):
        config = settings.model_copy(update={"notify_batch_size": batch_size})
        return NotificationService(store, transport, config=config)

    @pytest.mark.asyncio
    async def test_fixed_size_batches(self, store, subscription_service, fake_transport):
        await subscribe_all(subscription_service, *[f"u{i}@example.com" for i in range(5)])
        service = self._service(store, fake_transport, batch_size=2)

        result = await service.notify_subscribers(CONTENT)

        assert result.success is True
        assert result.batches_sent == 3
        assert [len(m.bcc) for m in fake_transport.sent] == [2, 2, 1]
        all_bcc = [addr for m in fake_transport.sent for addr in m.bcc]
        assert len(set(all_bcc)) == 5

    @pytest.mark.asyncio
    async def test_failing_batch_stops_fan_out(self, store, subscription_service, fake_transport):
        await subscribe_all(subscription_service, *[f"u{i}@example.com" for i in range(5)])
        fake_transport.fail_after = 1
        service = self._service(store, fake_transport, batch_size=2)

        result = await service.notify_subscribers(CONTENT)

        assert result.success is False
        assert result.batches_sent == 1
        assert len(fake_transport.sent) == 1


class TestMessageRendering:

    def _message(self, notification_service, content):
        job = NotificationJob(recipients=frozenset({"a@example.com"}), content=content)
        return notification_service.build_message(job, ["a@example.com"])

    def test_subject_and_link(self, notification_service):
        message = self._message(notification_service, CONTENT)

        assert message.subject == "New Blog Published: Scaling Postgres"
        assert "https://example.com/blog/scaling-postgres" in message.html
        assert "https://example.com/blog/scaling-postgres" in message.text
        assert "https://cdn.example.com/pg.png" in message.html
        assert "Lessons from a year of growth." in message.text

    def test_link_without_slug_points_at_site(self, notification_service):
        message = self._message(notification_service, PublishedContent(title="Hello"))

        assert 'href="https://example.com"' in message.html
        assert "<img" not in message.html

    def test_html_is_escaped(self, notification_service):
        message = self._message(
            notification_service,
            PublishedContent(title="<script>alert(1)</script>", slug="x"),
        )

        assert "<script>" not in message.html
        assert "&lt;script&gt;" in message.html

    def test_multi_line_title_gives_single_line_subject(self, notification_service):
        message = self._message(
            notification_service,
            PublishedContent(title="Line one\nLine two\r\n  and three", slug="x"),
        )

        assert message.subject == "New Blog Published: Line one Line two and three"
        assert single_line(" a\t b ") == "a b"


class TestSMTPFanOut:

    @pytest.mark.asyncio
    async def test_multi_line_title_is_delivered(self, store, subscription_service):
        await subscribe_all(subscription_service, "a@example.com")
        service = NotificationService(store, SMTPTransport())

        with patch("newsletter.services.smtp_transport.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            mock_send.return_value = ({}, "250 OK")
            result = await service.notify_subscribers(PublishedContent(title="Line one\nLine two"))

        assert result.success is True
        mime = mock_send.await_args.args[0]
        assert mime["Subject"] == "New Blog Published: Line one Line two"

"""
Newsletter Backend — Notification Fan-out Dispatcher
======================================================

What:  Turns "an article was published" into one outbound message reaching
       every active subscriber.
Why:   The publishing flow only knows about content; this is the single
       place that resolves recipients and talks to the transport.
How:
    ┌─────────────┐    ┌──────────────────┐    ┌──────────────┐
    │ Published   │───▶│ store.active_    │───▶│ transport.   │
    │ Content     │    │ emails()         │    │ send() x1    │
    └─────────────┘    └──────────────────┘    └──────────────┘
         no recipients → success=False, reason=no_recipients, no send

Message shape:
    From / To: the sending identity
    Bcc:       every active subscriber (recipients never see each other)

Batching:
    settings.notify_batch_size == 0 sends everything in a single transport
    call. A positive value splits the sorted recipient list into fixed-size
    batches, one call each; the first failing batch stops the fan-out.

Delivery is best-effort: a TransportError becomes success=False with
reason=transport_error and is never retried. Store failures propagate.
"""

import logging
from typing import List, Optional

from jinja2 import DictLoader, Environment, StrictUndefined, select_autoescape

from newsletter.config import Settings, settings as default_settings
from newsletter.exceptions import TransportError
from newsletter.schemas.subscriber import NotificationJob, NotificationResult, PublishedContent
from newsletter.services.subscriber_store import SubscriberStore
from newsletter.services.transport_base import EmailTransport, OutboundEmail

logger = logging.getLogger(__name__)

SUBJECT_TEMPLATE = "New Blog Published: {title}"


def single_line(value: str) -> str:
    """Collapse every whitespace run (CR/LF included) to one space; headers can't span lines."""
    return " ".join(value.split())

_HTML_TEMPLATE = """\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; background: #fff; border-radius: 16px; overflow: hidden;">
  <div style="background: #820507; color: #fff; padding: 32px 24px; text-align: center;">
    <h1 style="margin: 0; font-size: 2rem; font-weight: 800;">New Blog Published!</h1>
    <p style="margin: 10px 0 0 0; font-size: 1.1rem;">{{ content.title }}</p>
  </div>
  {% if content.image %}<img src="{{ content.image }}" alt="{{ content.title }}" style="width: 100%; max-height: 240px; object-fit: cover;" />{% endif %}
  <div style="padding: 28px 24px;">
    <h2 style="font-size: 1.3rem; color: #820507; margin-bottom: 12px;">{{ content.title }}</h2>
    <p style="color: #374151; font-size: 1rem; margin-bottom: 24px;">{{ content.excerpt or "" }}</p>
    <a href="{{ article_url }}" style="display: inline-block; background: #dc2626; color: #fff; padding: 12px 28px; border-radius: 25px; text-decoration: none; font-weight: 600;">Read Full Article</a>
  </div>
  <div style="background: #f8fafc; color: #64748b; text-align: center; padding: 18px 0; font-size: 0.95rem;">
    You are receiving this email because you subscribed to {{ sender_name }}'s newsletter.<br />
    <a href="{{ site_url }}" style="color: #dc2626;">Visit our website</a>
  </div>
</div>
"""

_TEXT_TEMPLATE = """\
New Blog Published: {{ content.title }}
{% if content.excerpt %}
{{ content.excerpt }}
{% endif %}
Read the full article: {{ article_url }}

You are receiving this email because you subscribed to {{ sender_name }}'s newsletter.
{{ site_url }}
"""

_templates = Environment(
    loader=DictLoader({
        "blog_notification.html": _HTML_TEMPLATE,
        "blog_notification.txt": _TEXT_TEMPLATE,
    }),
    autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=False),
    undefined=StrictUndefined,
)


class NotificationService:
    """Fan-out dispatcher: one published article → active subscribers."""

    def __init__(
        self,
        store: SubscriberStore,
        transport: EmailTransport,
        config: Optional[Settings] = None,
    ):
        self.store = store
        self.transport = transport
        self.config = config or default_settings

    def article_url(self, content: PublishedContent) -> str:
        site_url = self.config.frontend_url.rstrip("/")
        return f"{site_url}/blog/{content.slug}" if content.slug else site_url

    def build_message(self, job: NotificationJob, recipients: List[str]) -> OutboundEmail:
        context = {
            "content": job.content,
            "article_url": self.article_url(job.content),
            "site_url": self.config.frontend_url.rstrip("/"),
            "sender_name": self.config.sender_name,
        }
        return OutboundEmail(
            from_address=self.config.sender_identity,
            to=self.config.sender_email,
            bcc=recipients,
            subject=SUBJECT_TEMPLATE.format(title=single_line(job.content.title)),
            html=_templates.get_template("blog_notification.html").render(context),
            text=_templates.get_template("blog_notification.txt").render(context),
        )

    def _batches(self, recipients: List[str]) -> List[List[str]]:
        size = self.config.notify_batch_size
        if size <= 0:
            return [recipients]
        return [recipients[i:i + size] for i in range(0, len(recipients), size)]

    async def notify_subscribers(self, content: PublishedContent) -> NotificationResult:
        """
        Send `content` to every active subscriber.

        Returns:
            NotificationResult; success=True only if the transport accepted
            every call made for this job.

        Raises:
            StoreUnavailableError: recipients could not be resolved
        """
        emails = await self.store.active_emails()
        job = NotificationJob(recipients=frozenset(emails), content=content)

        if not job.recipients:
            logger.info("No active subscribers; skipping notification for '%s'", content.title)
            return NotificationResult(
                success=False,
                message="No recipients",
                reason="no_recipients",
            )

        recipients = sorted(job.recipients)
        batches_sent = 0
        delivered = 0
        for batch in self._batches(recipients):
            message = self.build_message(job, batch)
            try:
                message_id = await self.transport.send(message)
            except TransportError as e:
                logger.error(
                    "Blog notification for '%s' failed after %d/%d recipients: %s",
                    content.title,
                    delivered,
                    len(recipients),
                    e.message,
                )
                return NotificationResult(
                    success=False,
                    message=e.message,
                    reason=e.code,
                    recipient_count=len(recipients),
                    batches_sent=batches_sent,
                )
            batches_sent += 1
            delivered += len(batch)
            logger.debug("Notification batch %d accepted as %s", batches_sent, message_id)

        logger.info("Sent blog notification '%s' to %d subscribers", content.title, len(recipients))
        return NotificationResult(
            success=True,
            message="Notification sent",
            recipient_count=len(recipients),
            batches_sent=batches_sent,
        )

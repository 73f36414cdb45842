"""
Newsletter Backend — Abstract Email Transport Interface
=========================================================

What:  The contract the fan-out dispatcher uses to hand off a fully formed
       message, plus the message type itself.
Why:   The dispatcher must not know how mail leaves the process. SMTP is the
       production implementation; tests plug in an in-memory transport.
How:   Concrete transports inherit from EmailTransport and implement send().
"""

from abc import ABC, abstractmethod
from typing import List

from pydantic import BaseModel, Field


class OutboundEmail(BaseModel):
    """
    One message as handed to a transport.

    to:   the visible recipient (the sending identity for fan-outs)
    bcc:  blind recipients; never rendered into headers
    """
    from_address: str
    to: str
    bcc: List[str] = Field(default_factory=list)
    subject: str
    html: str
    text: str

    @property
    def envelope_recipients(self) -> List[str]:
        return [self.to, *self.bcc]


class EmailTransport(ABC):
    """
    Delivers messages; knows nothing about subscribers.

    Contract:
        - send() makes exactly one delivery attempt (no retry)
        - every implementation-specific failure is raised as TransportError
    """

    @abstractmethod
    async def send(self, message: OutboundEmail) -> str:
        """
        Attempt delivery of `message`.

        Returns:
            An opaque message id (callers may ignore it).

        Raises:
            TransportError: the transport refused or failed the send.
        """
        ...

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Whether credentials/endpoint are present (used by /health)."""
        ...

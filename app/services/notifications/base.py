"""
Email Provider Interface

Confirmation emails and the email relay endpoint go through one of these.
The mock keeps messages in memory; the real one talks to SendGrid.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class NotificationResult:
    """Outcome of one send attempt."""
    success: bool
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    provider: str = "unknown"


class BaseNotificationService(ABC):
    """Contract shared by the mock and SendGrid email providers."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def send_email(
        self,
        to_email: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None,
        reply_to: Optional[str] = None,
    ) -> NotificationResult:
        """
        Deliver one message.

        Provider rejections are reported through the result, not raised.
        """

    @abstractmethod
    async def health_check(self) -> bool:
        """True when the provider can accept messages."""

"""
Payment Service Abstract Base Class

Defines the interface contract for all payment service implementations.
Both MockPaymentService and StripePaymentService must implement these methods,
ensuring consistent behavior regardless of which service is active.

Design Pattern: Strategy Pattern
    - Allows runtime switching between payment providers
    - Facilitates testing with mock implementations
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional


def to_minor_units(amount: Decimal) -> int:
    """
    Convert a dollar amount to cents.

    Examples:
        >>> to_minor_units(Decimal("42.50"))
        4250
    """
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass
class PaymentResult:
    """
    Standardized result from payment capture.

    Attributes:
        success: Whether the payment was captured
        payment_id: Provider identifier for the payment (Stripe format: pi_xxx)
        amount: Amount charged in dollars
        currency: Currency code (e.g., "usd")
        status: Provider status string
        idempotency_key: Key the capture was sent with
        error_message: Error description if payment failed
        error_code: Machine-readable error code
        response_time_ms: Time taken to process the payment
    """
    success: bool
    payment_id: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: str = "usd"
    status: Optional[str] = None
    idempotency_key: Optional[str] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    response_time_ms: float = 0.0


class BasePaymentService(ABC):
    """Abstract base class for payment services."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of the payment provider."""
        pass

    @abstractmethod
    async def capture_payment(
        self,
        amount: Decimal,
        payment_token: str,
        idempotency_key: str,
        currency: Optional[str] = None,
        customer_email: Optional[str] = None,
        description: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> PaymentResult:
        """
        Charge a one-time payment token.

        Args:
            amount: Amount to charge in dollars; sent to the provider in cents
            payment_token: One-time token produced by the payment form
            idempotency_key: Retries with the same key never charge twice
            currency: Three-letter currency code (defaults to settings)
            customer_email: Customer's email for the receipt
            description: Description of the charge
            metadata: Additional key-value data to attach

        Returns:
            PaymentResult: Standardized result object
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Verify connectivity to the payment service."""
        pass

"""
Mock Payment Service Implementation

Simulates Stripe-like payment capture without making real API calls.
Used in development mode (ENV_MODE=development).

Behavior:
    - Simulates realistic response times
    - Randomly fails a share of payments (simulates real-world declines)
    - Always declines Stripe's ``tok_chargeDeclined`` test token
    - Replays the stored result for a repeated idempotency key
"""

import asyncio
import random
import uuid
import logging
from decimal import Decimal
from typing import Optional

from app.services.payment.base import (
    BasePaymentService,
    PaymentResult,
)

logger = logging.getLogger(__name__)

DECLINED_TOKEN = "tok_chargeDeclined"


class MockPaymentService(BasePaymentService):
    """
    Mock implementation of the payment service.

    Attributes:
        failure_rate: Probability of simulated payment failure (0.0-1.0)
        min_latency: Minimum simulated response time in seconds
        max_latency: Maximum simulated response time in seconds
    """

    # Simulated failure reasons (mimics real Stripe decline codes)
    DECLINE_REASONS = [
        ("card_declined", "Your card was declined."),
        ("insufficient_funds", "Your card has insufficient funds."),
        ("expired_card", "Your card has expired."),
        ("incorrect_cvc", "Your card's security code is incorrect."),
        ("processing_error", "An error occurred while processing your card."),
    ]

    def __init__(
        self,
        failure_rate: float = 0.10,
        min_latency: float = 0.2,
        max_latency: float = 0.8,
        currency: str = "usd",
    ):
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency
        self.currency = currency
        self._captured: dict[str, PaymentResult] = {}

        logger.info(
            f"MockPaymentService initialized "
            f"(failure_rate={failure_rate:.0%}, "
            f"latency={min_latency}-{max_latency}s)"
        )

    @property
    def provider_name(self) -> str:
        return "mock"

    async def _simulate_latency(self) -> float:
        """Sleep for a random latency; returns it in milliseconds."""
        latency = random.uniform(self.min_latency, self.max_latency)
        await asyncio.sleep(latency)
        return latency * 1000

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

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
        """Simulate capturing a payment."""
        currency = currency or self.currency
        logger.debug(f"Mock: Capturing ${amount:.2f} {currency.upper()} ({idempotency_key})")

        if idempotency_key in self._captured:
            logger.info(f"Mock: Replaying result for idempotency key {idempotency_key}")
            return self._captured[idempotency_key]

        if amount <= 0:
            return PaymentResult(
                success=False,
                currency=currency,
                idempotency_key=idempotency_key,
                error_message="Amount must be greater than 0",
                error_code="invalid_amount",
            )

        latency_ms = await self._simulate_latency()

        if payment_token == DECLINED_TOKEN or self._should_fail():
            if payment_token == DECLINED_TOKEN:
                error_code, error_message = self.DECLINE_REASONS[0]
            else:
                error_code, error_message = random.choice(self.DECLINE_REASONS)
            logger.debug(f"Mock: Payment declined - {error_code}")
            result = PaymentResult(
                success=False,
                amount=amount,
                currency=currency,
                status="failed",
                idempotency_key=idempotency_key,
                error_message=error_message,
                error_code=error_code,
                response_time_ms=latency_ms,
            )
        else:
            payment_id = f"pi_mock_{uuid.uuid4().hex[:24]}"
            logger.info(f"Mock: Payment captured - {payment_id} - ${amount:.2f}")
            result = PaymentResult(
                success=True,
                payment_id=payment_id,
                amount=amount,
                currency=currency,
                status="succeeded",
                idempotency_key=idempotency_key,
                response_time_ms=latency_ms,
            )

        self._captured[idempotency_key] = result
        return result

    async def health_check(self) -> bool:
        """Mock health check always returns True."""
        logger.debug("Mock: Health check passed")
        return True

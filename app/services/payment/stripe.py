"""
Stripe Payment Service Implementation

Production implementation using the official Stripe Python SDK.
Used when ENV_MODE=production or ENV_MODE=staging.

Requirements:
    - STRIPE_SECRET_KEY must be set in environment

Security Notes:
    - Never log payment tokens
    - Always send an idempotency key so retries cannot double charge
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

import stripe
from stripe import (
    APIConnectionError,
    AuthenticationError,
    CardError,
    InvalidRequestError,
    StripeError,
)

from app.core.config import get_settings
from app.services.payment.base import (
    BasePaymentService,
    PaymentResult,
    to_minor_units,
)

logger = logging.getLogger(__name__)


class StripePaymentService(BasePaymentService):
    """
    Production Stripe payment service implementation.

    Creates and confirms a PaymentIntent in one call from the one-time token
    produced by the site's payment form.
    """

    def __init__(self):
        """
        Initialize Stripe with API key from settings.

        Raises:
            ValueError: If STRIPE_SECRET_KEY is not configured
        """
        settings = get_settings()

        if not settings.stripe_secret_key:
            raise ValueError(
                "STRIPE_SECRET_KEY is required for production mode. "
                "Set it in your .env file or environment variables."
            )

        stripe.api_key = settings.stripe_secret_key
        stripe.api_version = "2023-10-16"  # Pin API version for stability

        self._currency = settings.stripe_currency
        self._restaurant = settings.restaurant_name

        logger.info(
            f"StripePaymentService initialized "
            f"(api_version={stripe.api_version})"
        )

    @property
    def provider_name(self) -> str:
        return "stripe"

    @staticmethod
    def _payment_method_params(payment_token: str) -> dict:
        # PaymentMethod ids are attached directly; legacy card tokens are wrapped
        if payment_token.startswith("pm_"):
            return {"payment_method": payment_token}
        return {"payment_method_data": {"type": "card", "card": {"token": payment_token}}}

    def _failure(
        self,
        start_time: datetime,
        idempotency_key: str,
        message: str,
        code: str,
    ) -> PaymentResult:
        elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
        return PaymentResult(
            success=False,
            currency=self._currency,
            status="failed",
            idempotency_key=idempotency_key,
            error_message=message,
            error_code=code,
            response_time_ms=elapsed_ms,
        )

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
        """Charge ``payment_token`` for ``amount`` dollars."""
        start_time = datetime.now()

        logger.info(f"Stripe: Capturing payment of ${amount:.2f} ({idempotency_key})")

        if amount <= 0:
            return self._failure(start_time, idempotency_key, "Amount must be greater than 0", "invalid_amount")

        try:
            intent = stripe.PaymentIntent.create(
                amount=to_minor_units(amount),
                currency=currency or self._currency,
                description=description or f"{self._restaurant} Order",
                receipt_email=customer_email,
                metadata=metadata or {},
                confirm=True,
                automatic_payment_methods={"enabled": True, "allow_redirects": "never"},
                idempotency_key=idempotency_key,
                **self._payment_method_params(payment_token),
            )

        except CardError as e:
            logger.warning(f"Stripe: Card declined - {e.code}: {e.user_message}")
            return self._failure(start_time, idempotency_key, e.user_message or "Card declined", e.code or "card_declined")

        except InvalidRequestError as e:
            logger.error(f"Stripe: Invalid request - {e}")
            return self._failure(start_time, idempotency_key, str(e), "invalid_request")

        except AuthenticationError as e:
            logger.critical(f"Stripe: Authentication failed - {e}")
            return self._failure(
                start_time, idempotency_key, "Payment service configuration error", "authentication_error"
            )

        except APIConnectionError as e:
            logger.error(f"Stripe: Connection error - {e}")
            return self._failure(
                start_time, idempotency_key, "Payment service temporarily unavailable", "connection_error"
            )

        except StripeError as e:
            logger.error(f"Stripe: Error - {e}")
            return self._failure(start_time, idempotency_key, "Payment processing error", "stripe_error")

        elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
        logger.info(f"Stripe: PaymentIntent {intent.id} status={intent.status}")

        return PaymentResult(
            success=intent.status == "succeeded",
            payment_id=intent.id,
            amount=Decimal(intent.amount) / 100,
            currency=intent.currency,
            status=intent.status,
            idempotency_key=idempotency_key,
            error_message=None if intent.status == "succeeded" else f"Payment {intent.status}",
            error_code=None if intent.status == "succeeded" else intent.status,
            response_time_ms=elapsed_ms,
        )

    async def health_check(self) -> bool:
        """Make a lightweight API call to verify credentials and connectivity."""
        try:
            stripe.Account.retrieve()
            logger.debug("Stripe: Health check passed")
            return True

        except StripeError as e:
            logger.error(f"Stripe: Health check failed - {e}")
            return False

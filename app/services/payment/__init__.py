"""
Payment provider selection.

    ENV_MODE=development  -> MockPaymentService, no network calls
    ENV_MODE=staging      -> StripePaymentService with test keys
    ENV_MODE=production   -> StripePaymentService with live keys

The instance is cached; `reset_payment_service()` drops it.
"""

import logging
from functools import lru_cache

from app.core.config import get_settings
from app.services.payment.base import (
    BasePaymentService,
    PaymentResult,
    to_minor_units,
)
from app.services.payment.mock import MockPaymentService
from app.services.payment.stripe import StripePaymentService

logger = logging.getLogger(__name__)


@lru_cache()
def get_payment_service() -> BasePaymentService:
    """
    Get the configured payment service instance.

    The instance is cached so every caller shares the same service.

    Raises:
        ValueError: If production mode but Stripe key not configured
    """
    settings = get_settings()

    if settings.is_development:
        logger.info("Payment Service: Using MockPaymentService (development mode)")
        return MockPaymentService(
            failure_rate=0.10,  # 10% simulated failures
            min_latency=0.2,
            max_latency=0.8,
            currency=settings.stripe_currency,
        )
    else:
        logger.info(
            f"Payment Service: Using StripePaymentService "
            f"({settings.env_mode.value} mode)"
        )
        return StripePaymentService()


def reset_payment_service() -> None:
    """Clear the cached payment service instance."""
    get_payment_service.cache_clear()
    logger.debug("Payment service cache cleared")


__all__ = [
    "get_payment_service",
    "reset_payment_service",
    "BasePaymentService",
    "PaymentResult",
    "MockPaymentService",
    "StripePaymentService",
    "to_minor_units",
]

"""
Order-Intake Error Taxonomy

Every failure the intake core can report is one of these types. The web layer
maps them to HTTP responses; nothing else should inspect error strings.

    IntakeError
    ├── InvalidIdentity        no email and no phone supplied
    ├── InvalidDeliveryDate    delivery/event date cannot be parsed
    ├── StoreUnavailable       store failed while reading
    ├── TransactionFailed      store failed while writing (rolled back)
    └── DiscountRejected
        ├── CodeNotFound
        ├── CodeExpired
        ├── MinimumNotMet
        ├── MaxUsesReached
        └── InvalidDiscountRule
"""

from decimal import Decimal
from typing import Optional


class IntakeError(Exception):
    """Base class for all order-intake failures."""

    status_code: int = 500
    reason: str = "server_error"
    public_message: str = "Server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)

    @property
    def client_message(self) -> str:
        """Message that is safe to return to the caller."""
        return str(self)


class InvalidIdentity(IntakeError):
    """Submission carries neither an email nor a phone number."""

    status_code = 400
    reason = "invalid_identity"
    public_message = "Invalid input - email or phone required"


class InvalidDeliveryDate(IntakeError):
    """Delivery or event date is not a recognizable date."""

    status_code = 400
    reason = "invalid_delivery_date"
    public_message = "Invalid delivery date"

    def __init__(self, raw_value: str):
        self.raw_value = raw_value
        super().__init__(f"Invalid delivery date: {raw_value!r}")


class StoreUnavailable(IntakeError):
    """The relational store could not be read."""

    reason = "store_unavailable"

    @property
    def client_message(self) -> str:
        return self.public_message


class TransactionFailed(IntakeError):
    """The write transaction failed and was rolled back."""

    reason = "transaction_failed"

    @property
    def client_message(self) -> str:
        return self.public_message


# =============================================================================
# DISCOUNT REJECTIONS
# =============================================================================

class DiscountRejected(IntakeError):
    """A promotional code cannot be applied to this order."""

    status_code = 400
    reason = "discount_rejected"
    public_message = "Discount code cannot be applied"

    def __init__(self, code: str, message: Optional[str] = None):
        self.code = code
        super().__init__(message)


class CodeNotFound(DiscountRejected):
    status_code = 404
    reason = "code_not_found"
    public_message = "Invalid discount code"


class CodeExpired(DiscountRejected):
    reason = "code_expired"
    public_message = "Discount code has expired"


class MinimumNotMet(DiscountRejected):
    reason = "minimum_not_met"

    def __init__(self, code: str, minimum: Decimal):
        self.minimum = minimum
        super().__init__(code, f"Minimum order amount of ${minimum:.2f} required")


class MaxUsesReached(DiscountRejected):
    reason = "max_uses_reached"
    public_message = "Discount code has reached maximum uses"


class InvalidDiscountRule(DiscountRejected):
    """Stored rule has a discount type the engine does not know."""

    reason = "invalid_discount_rule"
    public_message = "Invalid discount code data"

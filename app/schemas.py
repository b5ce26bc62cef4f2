"""
Pydantic Schemas for Request/Response Validation

Covers:
- Order and catering-request submissions
- Discount code validation and administration
- Payment capture and email relay
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from uuid import UUID
import re

from app.models import DiscountType


EMAIL_PATTERN = re.compile(r'^[\w\.\+-]+@[\w\.-]+\.\w+$')


def _optional_email(v: Optional[str]) -> Optional[str]:
    if v is None or not v.strip():
        return None
    v = v.strip()
    if not EMAIL_PATTERN.match(v):
        raise ValueError('Invalid email format')
    return v


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class CartItem(BaseModel):
    """Single line of an order or catering cart."""
    item_name: str = Field(..., min_length=1, max_length=100, examples=["Pad Thai"])
    category: str = Field(default="", max_length=50, examples=["Noodles"])
    price: Decimal = Field(..., ge=0, examples=["14.99"])
    quantity: int = Field(..., ge=1, le=999, examples=[2])
    selected_serves: Optional[str] = Field(None, max_length=20, examples=["10"])
    selected_size: Optional[str] = Field(None, max_length=20, examples=["Half"])
    upgrade_phad_thai_24_qty: int = Field(default=0, ge=0)
    upgrade_phad_thai_48_qty: int = Field(default=0, ge=0)
    add_on_qty: int = Field(default=0, ge=0)

    @field_validator('selected_serves', mode='before')
    @classmethod
    def serves_as_text(cls, v):
        if v is None or isinstance(v, str):
            return v
        return str(v)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class OrderCreate(BaseModel):
    """Request schema for submitting a standard order."""

    # Customer Info
    customer_name: str = Field(..., max_length=100, examples=["Jane Doe"])
    customer_email: Optional[str] = Field(None, max_length=255, examples=["jane@example.com"])
    customer_phone: Optional[str] = Field(None, max_length=20, examples=["904-555-1111"])
    consent_to_updates: Optional[bool] = Field(None)

    # Delivery
    delivery_address: str = Field(..., min_length=1, max_length=255, examples=["1301 N Orange Ave"])
    delivery_date: str = Field(..., min_length=1, max_length=100, examples=["12/25/2025 (Thursday)"])

    # Pricing (order_total is before any discount code is applied)
    order_total: Decimal = Field(..., ge=0, examples=["42.50"])
    tip_amount: Decimal = Field(default=Decimal("0"), ge=0)
    sales_tax: Decimal = Field(default=Decimal("0"), ge=0)
    discount_code: Optional[str] = Field(None, max_length=50, examples=["SAVE10"])

    # Extras
    additional_information: Optional[str] = Field(None, max_length=2000)
    payment_token: Optional[str] = Field(None, max_length=255)
    items: List[CartItem] = Field(default_factory=list)

    @field_validator('customer_email')
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        return _optional_email(v)

    @field_validator('discount_code')
    @classmethod
    def blank_code_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()


class CateringRequestCreate(BaseModel):
    """Request schema for submitting a catering request."""

    customer_name: str = Field(..., max_length=100, examples=["Jane Doe"])
    customer_email: Optional[str] = Field(None, max_length=255)
    customer_phone: Optional[str] = Field(None, max_length=20)

    street_address: str = Field(..., min_length=1, max_length=255)
    requested_date: str = Field(..., min_length=1, max_length=100, examples=["2025-12-25"])
    event_details: str = Field(default="", max_length=2000)
    special_instructions: str = Field(default="", max_length=2000)

    cart_items: List[CartItem] = Field(default_factory=list)
    total_price: Decimal = Field(..., ge=0)

    @field_validator('customer_email')
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        return _optional_email(v)


class DiscountValidateRequest(BaseModel):
    """Check a code against an order amount without redeeming it."""
    code: str = Field(..., min_length=1, max_length=50, examples=["SAVE10"])
    order_amount: Decimal = Field(..., ge=0, examples=["50.00"])


class DiscountCodeCreate(BaseModel):
    """Administrative creation of a discount code."""
    code: str = Field(..., min_length=1, max_length=50)
    discount_type: DiscountType = Field(default=DiscountType.PERCENTAGE)
    discount_value: Decimal = Field(..., ge=0)
    minimum_order_amount: Optional[Decimal] = Field(None, ge=0)
    max_uses: Optional[int] = Field(None, ge=0)
    description: Optional[str] = Field(None, max_length=500)
    expires_at: datetime


class DiscountCodeUpdate(BaseModel):
    """Partial update; omitted or null fields are left unchanged."""
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(None, ge=0)
    minimum_order_amount: Optional[Decimal] = Field(None, ge=0)
    max_uses: Optional[int] = Field(None, ge=0)
    description: Optional[str] = Field(None, max_length=500)
    expires_at: Optional[datetime] = None
    is_active: Optional[bool] = None


class PaymentRequest(BaseModel):
    """Capture a payment with a one-time token from the payment form."""
    amount: Decimal = Field(..., gt=0, examples=["42.50"])
    payment_token: str = Field(..., min_length=1)
    idempotency_key: Optional[str] = Field(None, max_length=255)
    customer_email: Optional[str] = None
    description: Optional[str] = Field(None, max_length=500)


class EmailRequest(BaseModel):
    """Relay a single email through the configured provider."""
    to: str = Field(default="")
    subject: str = Field(default="", max_length=255)
    html_body: str = Field(default="")
    plain_text_body: str = Field(default="")
    reply_to: Optional[str] = None


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class OrderCreateResponse(BaseModel):
    """Response after an order has been committed."""
    success: bool = True
    order_uuid: UUID
    customer_id: int
    customer_uuid: UUID
    total: float
    discount_amount: float = 0.0
    discount_code: Optional[str] = None


class CateringRequestCreateResponse(BaseModel):
    """Response after a catering request has been committed."""
    success: bool = True
    catering_request_id: int
    catering_request_uuid: UUID
    customer_id: int
    customer_uuid: UUID


class DiscountValidationResponse(BaseModel):
    is_valid: bool
    code: str
    discount_amount: float
    description: Optional[str] = None
    discount_type: str


class DiscountCodeResponse(BaseModel):
    """A discount code as exposed to the admin UI."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    uuid: UUID
    code: str
    discount_type: str
    discount_value: float
    minimum_order_amount: Optional[float] = None
    max_uses: Optional[int] = None
    current_uses: int
    description: Optional[str] = None
    is_active: bool
    expires_at: datetime
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DiscountUsageResponse(BaseModel):
    message: str = "Usage incremented"
    current_uses: int


class MessageResponse(BaseModel):
    message: str


class PaymentResponse(BaseModel):
    success: bool
    payment_id: Optional[str] = None
    amount: Optional[float] = None
    currency: str = "usd"
    status: Optional[str] = None
    idempotency_key: str


class EmailSendResponse(BaseModel):
    success: bool
    message: str


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    reason: Optional[str] = None
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    redis: str
    payment_service: str
    notification_service: str
    timestamp: datetime

"""
FastAPI Application Entry Point

Restaurant ordering API - order intake, catering requests and discount codes.
Supports both Mock services (development) and Real APIs (production).

Endpoints:
    - POST /api/orders: Submit an order
    - POST /api/catering-requests: Submit a catering request
    - /api/discount-codes: Validate, redeem and administer discount codes
    - POST /api/payments: Capture a payment
    - POST /api/emails: Relay an email
    - GET /health: System health check
"""

import asyncio
import sys
import logging
import uuid
from datetime import datetime
from functools import lru_cache
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Depends, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
import redis

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Internal imports
from app.core.config import get_settings, setup_logging
from app.core.exceptions import IntakeError
from app.database import get_db, init_db, engine
from app.schemas import (
    CateringRequestCreate,
    CateringRequestCreateResponse,
    DiscountCodeCreate,
    DiscountCodeResponse,
    DiscountCodeUpdate,
    DiscountUsageResponse,
    DiscountValidateRequest,
    DiscountValidationResponse,
    EmailRequest,
    EmailSendResponse,
    ErrorResponse,
    HealthResponse,
    MessageResponse,
    OrderCreate,
    OrderCreateResponse,
    PaymentRequest,
    PaymentResponse,
)
from app.services.discounts import DiscountCatalog, DiscountEngine
from app.services.intake import IntakePipeline
from app.services.notifications import get_notification_service
from app.services.payment import get_payment_service

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

REJECTION_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    await init_db()
    logger.info("Database initialized")

    payment_service = get_payment_service()
    notification_service = get_notification_service()
    logger.info(f"Payment Service: {payment_service.provider_name}")
    logger.info(f"Notification Service: {notification_service.provider_name}")

    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"Missing production config: {missing}")

    logger.info("Application ready")

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await engine.dispose()
    logger.info("Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Order intake for the restaurant's ordering site: customer resolution, "
        "rolling customer statistics, order ledger and discount codes."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# DEPENDENCIES
# =============================================================================

@lru_cache()
def get_intake_pipeline() -> IntakePipeline:
    return IntakePipeline()


@lru_cache()
def get_discount_engine() -> DiscountEngine:
    return DiscountEngine()


@lru_cache()
def get_discount_catalog() -> DiscountCatalog:
    return DiscountCatalog()


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


def _ping_redis() -> None:
    r = redis.Redis.from_url(settings.redis_url, socket_timeout=2)
    try:
        r.ping()
    finally:
        r.close()


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db)
) -> HealthResponse:
    """Verify all system components are operational."""

    db_status = "healthy"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    redis_status = "healthy"
    try:
        await asyncio.to_thread(_ping_redis)
    except Exception as e:
        redis_status = f"unhealthy: {str(e)}"
        logger.error(f"Redis health check failed: {e}")

    payment_status = "healthy" if await get_payment_service().health_check() else "unhealthy"
    notification_status = (
        "healthy" if await get_notification_service().health_check() else "unhealthy"
    )

    overall = "operational" if all(
        s == "healthy" for s in [db_status, redis_status, payment_status, notification_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        redis=redis_status,
        payment_service=payment_status,
        notification_service=notification_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# ORDER INTAKE ENDPOINTS
# =============================================================================

@app.post(
    "/api/orders",
    status_code=201,
    response_model=OrderCreateResponse,
    responses=REJECTION_RESPONSES,
    tags=["Orders"],
    summary="Submit Order",
)
async def create_order(
    order_data: OrderCreate,
    db: AsyncSession = Depends(get_db),
    pipeline: IntakePipeline = Depends(get_intake_pipeline),
) -> OrderCreateResponse:
    """
    Record an order for a resolved customer.

    When a discount code is supplied it is redeemed in the same transaction;
    a rejected code rejects the whole submission. This is a product decision:
    the customer is never charged full price for an order placed with a code
    that silently failed.
    """
    logger.info(f"Creating order for: {order_data.customer_name}")

    result = await pipeline.submit_order(db, order_data)

    return OrderCreateResponse(
        order_uuid=result.row_uuid,
        customer_id=result.customer_id,
        customer_uuid=result.customer_uuid,
        total=result.total,
        discount_amount=result.discount_amount,
        discount_code=result.discount.code if result.discount else None,
    )


@app.post(
    "/api/catering-requests",
    status_code=201,
    response_model=CateringRequestCreateResponse,
    responses=REJECTION_RESPONSES,
    tags=["Catering"],
    summary="Submit Catering Request",
)
async def create_catering_request(
    request_data: CateringRequestCreate,
    db: AsyncSession = Depends(get_db),
    pipeline: IntakePipeline = Depends(get_intake_pipeline),
) -> CateringRequestCreateResponse:
    """Record a catering request and queue the confirmation emails."""
    logger.info(f"Creating catering request for: {request_data.customer_name}")

    result = await pipeline.submit_catering_request(db, request_data)

    return CateringRequestCreateResponse(
        catering_request_id=result.row_id,
        catering_request_uuid=result.row_uuid,
        customer_id=result.customer_id,
        customer_uuid=result.customer_uuid,
    )


# =============================================================================
# DISCOUNT CODE ENDPOINTS
# =============================================================================

@app.get(
    "/api/discount-codes",
    response_model=list[DiscountCodeResponse],
    tags=["Discount Codes"],
)
async def list_discount_codes(
    db: AsyncSession = Depends(get_db),
    catalog: DiscountCatalog = Depends(get_discount_catalog),
) -> list[DiscountCodeResponse]:
    """Active codes, newest first."""
    codes = await catalog.list_active(db)
    return [DiscountCodeResponse.model_validate(code) for code in codes]


@app.post(
    "/api/discount-codes/validate",
    response_model=DiscountValidationResponse,
    responses=REJECTION_RESPONSES,
    tags=["Discount Codes"],
)
async def validate_discount_code(
    request_data: DiscountValidateRequest,
    db: AsyncSession = Depends(get_db),
    discounts: DiscountEngine = Depends(get_discount_engine),
) -> DiscountValidationResponse:
    """Price a code against an order amount without consuming a use."""
    quote = await discounts.validate(db, request_data.code, request_data.order_amount)
    return DiscountValidationResponse(
        is_valid=quote.valid,
        code=quote.code,
        discount_amount=quote.discount_amount,
        description=quote.description,
        discount_type=quote.discount_type,
    )


@app.get(
    "/api/discount-codes/{code}",
    response_model=DiscountCodeResponse,
    responses=REJECTION_RESPONSES,
    tags=["Discount Codes"],
)
async def get_discount_code(
    code: str,
    db: AsyncSession = Depends(get_db),
    catalog: DiscountCatalog = Depends(get_discount_catalog),
) -> DiscountCodeResponse:
    rule = await catalog.get_active(db, code)
    return DiscountCodeResponse.model_validate(rule)


@app.post(
    "/api/discount-codes",
    status_code=201,
    response_model=DiscountCodeResponse,
    responses=REJECTION_RESPONSES,
    tags=["Discount Codes"],
)
async def create_discount_code(
    code_data: DiscountCodeCreate,
    db: AsyncSession = Depends(get_db),
    catalog: DiscountCatalog = Depends(get_discount_catalog),
) -> DiscountCodeResponse:
    rule = await catalog.create(db, code_data)
    return DiscountCodeResponse.model_validate(rule)


@app.put(
    "/api/discount-codes/{code}",
    response_model=DiscountCodeResponse,
    responses=REJECTION_RESPONSES,
    tags=["Discount Codes"],
)
async def update_discount_code(
    code: str,
    changes: DiscountCodeUpdate,
    db: AsyncSession = Depends(get_db),
    catalog: DiscountCatalog = Depends(get_discount_catalog),
) -> DiscountCodeResponse:
    rule = await catalog.update(db, code, changes)
    return DiscountCodeResponse.model_validate(rule)


@app.post(
    "/api/discount-codes/{code}/increment",
    response_model=DiscountUsageResponse,
    responses=REJECTION_RESPONSES,
    tags=["Discount Codes"],
)
async def increment_discount_usage(
    code: str,
    db: AsyncSession = Depends(get_db),
    discounts: DiscountEngine = Depends(get_discount_engine),
) -> DiscountUsageResponse:
    """Record one redemption outside an order submission."""
    uses = await discounts.increment(db, code)
    return DiscountUsageResponse(current_uses=uses)


@app.delete(
    "/api/discount-codes/{code}",
    response_model=MessageResponse,
    responses=REJECTION_RESPONSES,
    tags=["Discount Codes"],
)
async def delete_discount_code(
    code: str,
    db: AsyncSession = Depends(get_db),
    catalog: DiscountCatalog = Depends(get_discount_catalog),
) -> MessageResponse:
    """Soft delete; the row stays for reporting."""
    await catalog.deactivate(db, code)
    return MessageResponse(message="Discount code deleted")


# =============================================================================
# PAYMENT & EMAIL ENDPOINTS
# =============================================================================

@app.post(
    "/api/payments",
    response_model=PaymentResponse,
    responses={402: {"model": ErrorResponse}},
    tags=["Payments"],
)
async def take_payment(request_data: PaymentRequest):
    """Charge a one-time payment token."""
    idempotency_key = request_data.idempotency_key or str(uuid.uuid4())

    payment_service = get_payment_service()
    result = await payment_service.capture_payment(
        amount=request_data.amount,
        payment_token=request_data.payment_token,
        idempotency_key=idempotency_key,
        customer_email=request_data.customer_email,
        description=request_data.description,
    )

    if not result.success:
        logger.warning(f"Payment {idempotency_key} failed: {result.error_code}")
        return JSONResponse(
            status_code=402,
            content=ErrorResponse(
                error=result.error_message or "Payment failed",
                reason=result.error_code,
            ).model_dump(),
        )

    return PaymentResponse(
        success=True,
        payment_id=result.payment_id,
        amount=result.amount,
        currency=result.currency,
        status=result.status,
        idempotency_key=idempotency_key,
    )


@app.post(
    "/api/emails",
    response_model=EmailSendResponse,
    tags=["Emails"],
)
async def send_email(request_data: EmailRequest) -> EmailSendResponse:
    """Send one email synchronously through the configured provider."""
    if not request_data.to.strip():
        raise HTTPException(status_code=400, detail="Recipient email address is required")

    notification_service = get_notification_service()
    result = await notification_service.send_email(
        to_email=request_data.to.strip(),
        subject=request_data.subject,
        body_html=request_data.html_body,
        body_text=request_data.plain_text_body or None,
        reply_to=request_data.reply_to,
    )

    if not result.success:
        raise HTTPException(
            status_code=502,
            detail=result.error_message or "Email provider rejected the message",
        )

    return EmailSendResponse(success=True, message="Email sent successfully")


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(IntakeError)
async def intake_exception_handler(request: Request, exc: IntakeError) -> JSONResponse:
    """Map intake failures to their HTTP status with a machine-readable reason."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.reason}: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.reason}: {exc}")

    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.client_message, reason=exc.reason).model_dump(),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )

"""
Order-Intake Pipeline

One pipeline serves both submission channels:

    discount (orders with a code) -> resolve customer -> merge stats -> ledger

All of it runs inside one ledger transaction, so a rejected code, an
unparsable date or a store error leaves no trace. Confirmation emails are
queued only after the commit and never affect the outcome.
"""

import dataclasses
import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app import tasks
from app.core.config import get_settings
from app.models import Channel
from app.schemas import CateringRequestCreate, OrderCreate
from app.services.discounts.engine import DiscountEngine, DiscountQuote
from app.services.intake.ledger import LedgerEntry, LedgerRow, OrderLedger
from app.services.intake.resolver import ContactInfo, CustomerResolver
from app.services.intake.stats import StatsMerger
from app.services.notifications.emails import (
    EmailContent,
    render_business_copy,
    render_catering_confirmation,
    render_order_confirmation,
)

logger = logging.getLogger(__name__)


@dataclass
class IntakeResult:
    """Identifiers handed back to the caller after a committed submission."""
    channel: Channel
    row_id: int
    row_uuid: uuid.UUID
    customer_id: int
    customer_uuid: uuid.UUID
    customer_created: bool
    total: Decimal
    discount: Optional[DiscountQuote] = None
    row: Optional[LedgerRow] = dataclasses.field(default=None, repr=False)

    @property
    def discount_amount(self) -> Decimal:
        return self.discount.discount_amount if self.discount else Decimal("0")


class IntakePipeline:
    """Resolves, merges and records one submission as a single unit."""

    def __init__(
        self,
        resolver: Optional[CustomerResolver] = None,
        merger: Optional[StatsMerger] = None,
        ledger: Optional[OrderLedger] = None,
        discounts: Optional[DiscountEngine] = None,
    ):
        self.resolver = resolver or CustomerResolver()
        self.merger = merger or StatsMerger()
        self.ledger = ledger or OrderLedger()
        self.discounts = discounts or DiscountEngine()

    # =========================================================================
    # SHARED UNIT
    # =========================================================================

    async def _submit(
        self,
        session: AsyncSession,
        contact: ContactInfo,
        entry: LedgerEntry,
        discount_code: Optional[str] = None,
    ) -> IntakeResult:
        contact.require_identity()

        async def unit(tx: AsyncSession) -> IntakeResult:
            quote = None
            current = entry
            if discount_code:
                quote = await self.discounts.redeem(tx, discount_code, entry.total)
                current = dataclasses.replace(
                    entry,
                    total=max(entry.total - quote.discount_amount, Decimal("0")),
                    discount=quote.discount_amount,
                    payload={**entry.payload, "discount_code": quote.code},
                )

            resolved = await self.resolver.resolve(tx, contact)
            stats = self.merger.merge(resolved.customer.data, current.channel, current.total)
            row = await self.ledger.record(tx, resolved.customer, stats, current)

            return IntakeResult(
                channel=current.channel,
                row_id=row.id,
                row_uuid=row.uuid,
                customer_id=resolved.customer.id,
                customer_uuid=resolved.customer.uuid,
                customer_created=resolved.created,
                total=current.total,
                discount=quote,
                row=row,
            )

        result = await self.ledger.commit(session, unit)
        logger.info(
            f"Committed {result.channel.value} {result.row_uuid} "
            f"for customer {result.customer_uuid}"
        )
        return result

    # =========================================================================
    # CHANNELS
    # =========================================================================

    async def submit_order(self, session: AsyncSession, order: OrderCreate) -> IntakeResult:
        """
        Record a standard order.

        ``order.order_total`` is the amount before any discount code; the
        committed total is that amount minus the discount, floored at zero.
        """
        contact = ContactInfo.build(
            order.customer_name,
            order.customer_email,
            order.customer_phone,
            order.consent_to_updates,
        )
        entry = LedgerEntry(
            channel=Channel.ORDER,
            delivery_address=order.delivery_address,
            delivery_date=order.delivery_date,
            total=order.order_total,
            tip=order.tip_amount,
            payload={
                "items": [item.model_dump(mode="json") for item in order.items],
                "additional_info": order.additional_information,
                "payment_token": order.payment_token,
                "sales_tax": float(order.sales_tax),
                "discount_code": None,
            },
        )

        result = await self._submit(session, contact, entry, order.discount_code)
        self._queue_order_emails(order, result)
        return result

    async def submit_catering_request(
        self,
        session: AsyncSession,
        request: CateringRequestCreate,
    ) -> IntakeResult:
        """Record a catering request; consent is never touched by this channel."""
        contact = ContactInfo.build(
            request.customer_name,
            request.customer_email,
            request.customer_phone,
        )
        entry = LedgerEntry(
            channel=Channel.CATERING,
            delivery_address=request.street_address,
            delivery_date=request.requested_date,
            total=request.total_price,
            payload={
                "event_details": request.event_details,
                "special_instructions": request.special_instructions,
                "cart": [item.model_dump(mode="json") for item in request.cart_items],
            },
        )

        result = await self._submit(session, contact, entry)
        self._queue_catering_emails(request, result)
        return result

    # =========================================================================
    # NOTIFICATIONS
    # =========================================================================

    def _queue(self, to_email: Optional[str], content: EmailContent) -> None:
        if not to_email:
            return
        try:
            tasks.send_email.delay(to_email, content.subject, content.html, content.text)
        except Exception as e:
            logger.exception(f"Could not queue email '{content.subject}' to {to_email}: {e}")

    def _queue_order_emails(self, order: OrderCreate, result: IntakeResult) -> None:
        settings = get_settings()
        order_number = str(result.row_uuid)
        try:
            content = render_order_confirmation(
                order,
                order_number,
                total=result.total,
                discount=result.discount_amount,
                delivery_date=result.row.delivery_date if result.row is not None else None,
            )
            copy = render_business_copy(content, "Order", order.customer_name, order_number)
        except Exception as e:
            logger.exception(f"Could not render confirmation for order {order_number}: {e}")
            return

        self._queue(order.customer_email, content)
        self._queue(settings.restaurant_notification_email, copy)

    def _queue_catering_emails(self, request: CateringRequestCreate, result: IntakeResult) -> None:
        settings = get_settings()
        try:
            content = render_catering_confirmation(
                request,
                requested_date=result.row.delivery_date if result.row is not None else None,
            )
            copy = render_business_copy(content, "Catering Request", request.customer_name)
        except Exception as e:
            logger.exception(f"Could not render confirmation for catering request {result.row_uuid}: {e}")
            return

        self._queue(request.customer_email, content)
        self._queue(settings.restaurant_notification_email, copy)

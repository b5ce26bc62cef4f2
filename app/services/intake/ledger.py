"""
Order Ledger

Writes the customer upsert and the new order / catering-request row as one
unit. Either both are committed or neither is.

Concurrent submissions for the same customer are detected through the
customer's version column: the losing transaction fails its UPDATE with a
StaleDataError, is rolled back, and the whole unit is run again.
"""

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import get_settings
from app.core.exceptions import InvalidDeliveryDate, TransactionFailed
from app.models import CateringRequest, Channel, Customer, Order
from app.services.intake.stats import CustomerStats

logger = logging.getLogger(__name__)

T = TypeVar("T")

LedgerRow = Union[Order, CateringRequest]

# Accepted shapes for a free-text delivery / event date
DATE_FORMATS = (
    "%m/%d/%Y",
    "%m/%d/%y",
    "%m-%d-%Y",
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y %I:%M %p",
    "%m/%d/%Y %H:%M",
    "%B %d, %Y",
    "%b %d, %Y",
    "%A, %B %d, %Y",
    "%d %B %Y",
)


def strip_annotation(raw: str) -> str:
    """Drop a trailing parenthetical such as ``(Thursday)``."""
    paren = raw.find("(")
    if paren > 0:
        raw = raw[:paren]
    return raw.strip()


def parse_delivery_date(raw: Union[str, date, datetime, None]) -> date:
    """
    Parse a delivery or event date.

    Examples:
        >>> parse_delivery_date("12/25/2025 (Thursday)")
        datetime.date(2025, 12, 25)

    Raises:
        InvalidDeliveryDate: If nothing recognizable is left after stripping
    """
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if raw is None:
        raise InvalidDeliveryDate("")

    text = strip_annotation(str(raw))
    if not text:
        raise InvalidDeliveryDate(str(raw))

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        raise InvalidDeliveryDate(str(raw)) from None


@dataclass
class LedgerEntry:
    """Everything the ledger needs to write one submission row."""
    channel: Channel
    delivery_address: Optional[str]
    delivery_date: Union[str, date, datetime, None]
    total: Decimal
    payload: dict[str, Any] = field(default_factory=dict)
    tip: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")


class OrderLedger:
    """Transaction boundary for one intake submission."""

    def __init__(self, max_attempts: Optional[int] = None):
        self.max_attempts = max_attempts or get_settings().intake_max_attempts

    async def commit(
        self,
        session: AsyncSession,
        unit: Callable[[AsyncSession], Awaitable[T]],
    ) -> T:
        """
        Run ``unit`` inside a single transaction on ``session``.

        The unit is re-run from scratch when it loses a concurrent customer
        update. Intake errors raised by the unit propagate unchanged after
        rollback; any other store error becomes TransactionFailed.

        Raises:
            TransactionFailed: On store errors or when every attempt conflicted
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                async with session.begin():
                    return await unit(session)
            except StaleDataError as exc:
                if attempt >= self.max_attempts:
                    logger.error(f"Customer update conflicted {attempt} times, giving up")
                    raise TransactionFailed("Concurrent customer update") from exc
                logger.warning(
                    f"Concurrent customer update, retrying ({attempt}/{self.max_attempts})"
                )
            except SQLAlchemyError as exc:
                logger.exception(f"Intake transaction rolled back: {exc}")
                raise TransactionFailed(str(exc)) from exc

        raise TransactionFailed("No attempts made")

    async def record(
        self,
        session: AsyncSession,
        customer: Customer,
        stats: CustomerStats,
        entry: LedgerEntry,
    ) -> LedgerRow:
        """
        Write the customer and the submission row inside the open transaction.

        The customer is flushed first so a newly created one has an id for
        the row's foreign key.
        """
        delivery_date = parse_delivery_date(entry.delivery_date)

        customer.data = stats.to_bag()
        await session.flush()

        columns: dict[str, Any] = dict(
            uuid=uuid.uuid4(),
            customer_id=customer.id,
            customer_name=customer.name,
            customer_email=customer.email,
            customer_phone=customer.phone,
            delivery_address=entry.delivery_address,
            delivery_date=delivery_date,
            order_total=entry.total,
            data=json.dumps(entry.payload, default=str),
        )

        if entry.channel is Channel.CATERING:
            row: LedgerRow = CateringRequest(**columns)
        else:
            row = Order(tip=entry.tip, discount=entry.discount, **columns)

        session.add(row)
        await session.flush()

        logger.info(
            f"Recorded {entry.channel.value} {row.uuid} for customer #{customer.id} "
            f"(${entry.total})"
        )
        return row

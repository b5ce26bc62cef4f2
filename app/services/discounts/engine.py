"""
Discount Engine

Validates promotional codes and prices the discount.

Validation steps, each a terminal outcome:
    1. code exists and is active            else CodeNotFound
    2. expiry strictly in the future        else CodeExpired
    3. minimum order amount met (if set)    else MinimumNotMet
    4. current uses below max uses (if set) else MaxUsesReached
    5. percentage -> amount * value / 100, rounded to cents (half-even)
       fixed      -> value as-is, even when larger than the order

Redemption reserves a use with one conditional UPDATE bounded by max_uses,
so two concurrent redemptions can never both take the last slot.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Callable, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    CodeExpired,
    CodeNotFound,
    InvalidDiscountRule,
    MaxUsesReached,
    MinimumNotMet,
    StoreUnavailable,
    TransactionFailed,
)
from app.models import DiscountCode, DiscountType, utcnow

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def normalize_code(code: str) -> str:
    return code.strip().upper()


def as_utc(value: datetime) -> datetime:
    """Stores without timezone support hand back naive UTC values."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def compute_discount(rule: DiscountCode, amount: Decimal) -> Decimal:
    """Price the discount for ``amount`` under ``rule``."""
    discount_type = (rule.discount_type or "").lower()
    value = Decimal(rule.discount_value)

    if discount_type == DiscountType.PERCENTAGE.value:
        return (Decimal(amount) * value / Decimal(100)).quantize(CENT, rounding=ROUND_HALF_EVEN)
    if discount_type == DiscountType.FIXED.value:
        return value

    raise InvalidDiscountRule(rule.code)


@dataclass
class DiscountQuote:
    """A validated discount."""
    code: str
    discount_amount: Decimal
    discount_type: str
    description: Optional[str] = None
    valid: bool = True
    current_uses: Optional[int] = None


class DiscountEngine:
    """Validation and redemption of discount codes."""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock

    # =========================================================================
    # LOOKUP
    # =========================================================================

    async def lookup(self, session: AsyncSession, code: str) -> DiscountCode:
        """
        Fetch the active rule for ``code`` (case-insensitive).

        Raises:
            CodeNotFound: If no active code matches
            StoreUnavailable: If the store cannot be read
        """
        normalized = normalize_code(code)
        try:
            result = await session.execute(
                select(DiscountCode)
                .where(DiscountCode.code == normalized, DiscountCode.is_active.is_(True))
                .order_by(DiscountCode.id)
                .limit(1)
            )
            rule = result.scalars().first()
        except SQLAlchemyError as exc:
            logger.exception(f"Discount code lookup failed: {exc}")
            raise StoreUnavailable("Discount code lookup failed") from exc

        if rule is None:
            raise CodeNotFound(normalized)
        return rule

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def _check_usable(self, rule: DiscountCode, now: datetime) -> None:
        if not rule.is_active:
            raise CodeNotFound(rule.code)
        if as_utc(rule.expires_at) <= now:
            raise CodeExpired(rule.code)

    def evaluate(
        self,
        rule: DiscountCode,
        amount: Decimal,
        now: Optional[datetime] = None,
    ) -> DiscountQuote:
        """Apply steps 2-5 to an already loaded rule."""
        now = now or self._clock()

        self._check_usable(rule, now)

        if rule.minimum_order_amount is not None and amount < rule.minimum_order_amount:
            raise MinimumNotMet(rule.code, Decimal(rule.minimum_order_amount))

        if rule.max_uses is not None and (rule.current_uses or 0) >= rule.max_uses:
            raise MaxUsesReached(rule.code)

        return DiscountQuote(
            code=rule.code,
            discount_amount=compute_discount(rule, amount),
            discount_type=rule.discount_type,
            description=rule.description,
            current_uses=rule.current_uses,
        )

    async def validate(self, session: AsyncSession, code: str, amount: Decimal) -> DiscountQuote:
        """Validate without reserving a use."""
        rule = await self.lookup(session, code)
        quote = self.evaluate(rule, amount)
        logger.info(f"Discount {quote.code} valid for ${amount}: -${quote.discount_amount}")
        return quote

    # =========================================================================
    # REDEMPTION
    # =========================================================================

    async def _reserve(self, session: AsyncSession, rule: DiscountCode, now: datetime) -> Optional[int]:
        """Take one use if still available. Returns the new use count or None."""
        stmt = (
            update(DiscountCode)
            .where(
                DiscountCode.id == rule.id,
                DiscountCode.is_active.is_(True),
                DiscountCode.expires_at > now,
                or_(
                    DiscountCode.max_uses.is_(None),
                    DiscountCode.current_uses < DiscountCode.max_uses,
                ),
            )
            .values(current_uses=DiscountCode.current_uses + 1)
            .returning(DiscountCode.current_uses)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            logger.exception(f"Discount reservation failed: {exc}")
            raise TransactionFailed("Discount reservation failed") from exc

    async def _explain_refusal(self, session: AsyncSession, rule: DiscountCode, now: datetime):
        """Re-read a rule whose reservation was refused and raise the reason."""
        result = await session.execute(
            select(DiscountCode)
            .where(DiscountCode.id == rule.id)
            .execution_options(populate_existing=True)
        )
        fresh = result.scalars().one()
        self._check_usable(fresh, now)
        raise MaxUsesReached(fresh.code)

    async def redeem(self, session: AsyncSession, code: str, amount: Decimal) -> DiscountQuote:
        """
        Validate ``code`` for ``amount`` and reserve one use, atomically.

        Must run inside the caller's transaction: if that transaction rolls
        back, the reserved use is released with it.
        """
        now = self._clock()
        rule = await self.lookup(session, code)
        quote = self.evaluate(rule, amount, now)

        uses = await self._reserve(session, rule, now)
        if uses is None:
            logger.warning(f"Discount {rule.code} passed validation but its last use was taken")
            await self._explain_refusal(session, rule, now)

        quote.current_uses = uses
        logger.info(f"Redeemed discount {quote.code} (use {uses}): -${quote.discount_amount}")
        return quote

    async def increment(self, session: AsyncSession, code: str) -> int:
        """
        Record one redemption of ``code`` outside an order submission.

        Returns:
            The new use count
        """
        async with session.begin():
            now = self._clock()
            rule = await self.lookup(session, code)
            self._check_usable(rule, now)

            uses = await self._reserve(session, rule, now)
            if uses is None:
                await self._explain_refusal(session, rule, now)

        logger.info(f"Discount {rule.code} usage incremented to {uses}")
        return uses

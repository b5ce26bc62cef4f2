"""
Discount Code Catalog

Administrative operations on discount codes: list, fetch, create, update and
soft-delete. Codes are always stored upper-cased.
"""

import logging
import uuid
from datetime import datetime
from typing import Callable

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    CodeNotFound,
    InvalidDiscountRule,
    StoreUnavailable,
    TransactionFailed,
)
from app.models import DiscountCode, utcnow
from app.schemas import DiscountCodeCreate, DiscountCodeUpdate
from app.services.discounts.engine import as_utc, normalize_code

logger = logging.getLogger(__name__)


class DiscountCatalog:
    """CRUD over the discount_codes table."""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock

    async def _first(self, session: AsyncSession, stmt) -> DiscountCode:
        try:
            result = await session.execute(stmt)
        except SQLAlchemyError as exc:
            logger.exception(f"Discount code query failed: {exc}")
            raise StoreUnavailable("Discount code query failed") from exc
        return result.scalars().first()

    async def _commit(self, session: AsyncSession, action: str) -> None:
        try:
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.exception(f"Could not {action}: {exc}")
            raise TransactionFailed(f"Could not {action}") from exc

    async def list_active(self, session: AsyncSession) -> list[DiscountCode]:
        """Active codes, newest first."""
        try:
            result = await session.execute(
                select(DiscountCode)
                .where(DiscountCode.is_active.is_(True))
                .order_by(DiscountCode.created_at.desc(), DiscountCode.id.desc())
            )
        except SQLAlchemyError as exc:
            logger.exception(f"Discount code listing failed: {exc}")
            raise StoreUnavailable("Discount code listing failed") from exc
        return list(result.scalars().all())

    async def get_active(self, session: AsyncSession, code: str) -> DiscountCode:
        normalized = normalize_code(code)
        rule = await self._first(
            session,
            select(DiscountCode)
            .where(DiscountCode.code == normalized, DiscountCode.is_active.is_(True))
            .order_by(DiscountCode.id)
            .limit(1),
        )
        if rule is None:
            raise CodeNotFound(normalized, "Discount code not found")
        return rule

    async def create(self, session: AsyncSession, data: DiscountCodeCreate) -> DiscountCode:
        """
        Create a new active code with zero uses.

        Raises:
            InvalidDiscountRule: If the expiry is not in the future
        """
        code = normalize_code(data.code)
        if as_utc(data.expires_at) <= self._clock():
            raise InvalidDiscountRule(code, "Expiration date must be in the future")

        rule = DiscountCode(
            uuid=uuid.uuid4(),
            code=code,
            discount_type=data.discount_type.value,
            discount_value=data.discount_value,
            minimum_order_amount=data.minimum_order_amount,
            max_uses=data.max_uses,
            current_uses=0,
            description=data.description,
            is_active=True,
            expires_at=as_utc(data.expires_at),
        )
        session.add(rule)
        await self._commit(session, f"create discount code {code}")

        logger.info(f"Created discount code {code} ({rule.discount_type} {rule.discount_value})")
        return rule

    async def update(
        self,
        session: AsyncSession,
        code: str,
        changes: DiscountCodeUpdate,
    ) -> DiscountCode:
        """Apply the non-null fields of ``changes``; inactive codes can be updated too."""
        normalized = normalize_code(code)
        rule = await self._first(
            session,
            select(DiscountCode)
            .where(DiscountCode.code == normalized)
            .order_by(DiscountCode.id)
            .limit(1),
        )
        if rule is None:
            raise CodeNotFound(normalized, "Discount code not found")

        fields = changes.model_dump(exclude_none=True)
        if "discount_type" in fields:
            fields["discount_type"] = fields["discount_type"].value
        if "expires_at" in fields:
            fields["expires_at"] = as_utc(fields["expires_at"])

        for name, value in fields.items():
            setattr(rule, name, value)

        await self._commit(session, f"update discount code {normalized}")
        logger.info(f"Updated discount code {normalized}: {sorted(fields)}")
        return rule

    async def deactivate(self, session: AsyncSession, code: str) -> None:
        """Soft delete: every row carrying ``code`` is flagged inactive."""
        normalized = normalize_code(code)
        try:
            result = await session.execute(
                update(DiscountCode)
                .where(DiscountCode.code == normalized)
                .values(is_active=False)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.exception(f"Discount code deactivation failed: {exc}")
            raise TransactionFailed("Discount code deactivation failed") from exc

        if result.rowcount == 0:
            await session.rollback()
            raise CodeNotFound(normalized, "Discount code not found")

        await self._commit(session, f"delete discount code {normalized}")
        logger.info(f"Deactivated discount code {normalized}")

"""
Customer Identity Resolution

Maps the contact fields of a submission to one canonical customer row.

Matching rules, first match wins:
    1. exact (email, phone) pair
    2. exact email
    3. exact phone
    4. no match: a new customer with a fresh UUID

A matched row takes the incoming contact values (last write wins). Two
people sharing a phone number will therefore be merged into one customer;
this is the existing product behavior and is kept on purpose.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Iterator, Optional

from sqlalchemy import and_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from app.core.exceptions import InvalidIdentity, StoreUnavailable
from app.models import Customer

logger = logging.getLogger(__name__)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class ContactInfo:
    """Contact fields as submitted, whitespace-trimmed, blanks as None."""
    name: str
    email: Optional[str]
    phone: Optional[str]
    consent_to_updates: Optional[bool] = None

    @classmethod
    def build(
        cls,
        name: Optional[str],
        email: Optional[str],
        phone: Optional[str],
        consent_to_updates: Optional[bool] = None,
    ) -> "ContactInfo":
        return cls(
            name=(name or "").strip(),
            email=_clean(email),
            phone=_clean(phone),
            consent_to_updates=consent_to_updates,
        )

    @property
    def has_identity(self) -> bool:
        return bool(self.email or self.phone)

    def require_identity(self) -> None:
        if not self.has_identity:
            raise InvalidIdentity()


@dataclass
class ResolvedCustomer:
    customer: Customer
    created: bool
    matched_by: Optional[str] = None


class CustomerResolver:
    """Finds or creates the canonical customer for a submission."""

    @staticmethod
    def _match_rules(contact: ContactInfo) -> Iterator[tuple[str, ColumnElement[bool]]]:
        if contact.email and contact.phone:
            yield "email+phone", and_(
                Customer.email == contact.email,
                Customer.phone == contact.phone,
            )
        if contact.email:
            yield "email", Customer.email == contact.email
        if contact.phone:
            yield "phone", Customer.phone == contact.phone

    async def find(
        self,
        session: AsyncSession,
        contact: ContactInfo,
    ) -> tuple[Optional[Customer], Optional[str]]:
        """
        Look up an existing customer.

        Each rule is its own ordered query, so a phone-only match can never
        win over a pair match regardless of physical row order.

        Raises:
            StoreUnavailable: If the store cannot be read
        """
        try:
            for rule, clause in self._match_rules(contact):
                result = await session.execute(
                    select(Customer).where(clause).order_by(Customer.id).limit(1)
                )
                customer = result.scalars().first()
                if customer is not None:
                    return customer, rule
        except SQLAlchemyError as exc:
            logger.exception(f"Customer lookup failed: {exc}")
            raise StoreUnavailable("Customer lookup failed") from exc
        return None, None

    @staticmethod
    def apply_contact(customer: Customer, contact: ContactInfo) -> None:
        """Overwrite stored contact fields with the submitted ones."""
        if contact.name:
            customer.name = contact.name
        if contact.email:
            customer.email = contact.email
        if contact.phone:
            customer.phone = contact.phone
        if contact.consent_to_updates is not None:
            customer.consent_to_updates = contact.consent_to_updates

    async def resolve(self, session: AsyncSession, contact: ContactInfo) -> ResolvedCustomer:
        """
        Resolve a submission's contact fields to a customer.

        The returned customer is attached to ``session`` but not flushed;
        the ledger writes it together with the order row.

        Raises:
            InvalidIdentity: If neither email nor phone is present
            StoreUnavailable: If the store cannot be read
        """
        contact.require_identity()

        customer, rule = await self.find(session, contact)
        if customer is not None:
            self.apply_contact(customer, contact)
            logger.info(f"Resolved customer #{customer.id} by {rule}")
            return ResolvedCustomer(customer=customer, created=False, matched_by=rule)

        customer = Customer(
            uuid=uuid.uuid4(),
            name=contact.name,
            email=contact.email,
            phone=contact.phone,
            consent_to_updates=bool(contact.consent_to_updates),
        )
        session.add(customer)
        logger.info(f"No match for {contact.email or contact.phone}, creating customer")
        return ResolvedCustomer(customer=customer, created=True)

"""
Customer Rolling Statistics

The customers.data column is an opaque JSON bag. Only three keys have a
meaning to the intake core:

    number_of_orders              counter for the standard order channel
    number_of_catering_requests   counter for the catering channel
    total_spent                   running sum across both channels

Everything else in the bag belongs to someone else and is carried through
untouched. CustomerStats is the typed view of the bag; it is serialized back
to JSON only when the customer row is written.
"""

import json
import logging
from decimal import Decimal
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_serializer,
    field_validator,
)

from app.models import Channel

logger = logging.getLogger(__name__)

KNOWN_FIELDS = ("order_count", "catering_count", "total_spent")


class CustomerStats(BaseModel):
    """Typed view over a customer's attribute bag. Unknown keys are kept as extras."""

    # Known keys are read by their stored names only; a bag key that happens
    # to match a field name is a foreign key and stays in the extras.
    model_config = ConfigDict(extra="allow")

    order_count: Optional[int] = Field(default=None, alias="number_of_orders", ge=0)
    catering_count: Optional[int] = Field(
        default=None, alias="number_of_catering_requests", ge=0
    )
    total_spent: Optional[Decimal] = Field(default=None)

    @field_validator("total_spent", mode="before")
    @classmethod
    def _float_as_written(cls, value):
        # JSON numbers arrive as floats; keep the digits that were stored
        if isinstance(value, float):
            return Decimal(str(value))
        return value

    @field_serializer("total_spent")
    def _serialize_total(self, value: Optional[Decimal]) -> Optional[float]:
        if value is None:
            return None
        return float(value)

    # =========================================================================
    # STORAGE BOUNDARY
    # =========================================================================

    @classmethod
    def from_bag(cls, raw: Optional[str]) -> "CustomerStats":
        """
        Parse a stored bag.

        A bag that is not a JSON object is treated as empty. A known key
        holding an unusable value is dropped and the rest of the bag is kept.
        """
        if raw is None or not raw.strip():
            return cls()

        try:
            bag = json.loads(raw)
        except ValueError:
            logger.warning("Customer stats bag is not valid JSON, starting fresh")
            return cls()

        if not isinstance(bag, dict):
            logger.warning(f"Customer stats bag is a {type(bag).__name__}, starting fresh")
            return cls()

        try:
            return cls.model_validate(bag)
        except ValidationError as exc:
            rejected = {str(err["loc"][0]) for err in exc.errors() if err["loc"]}
            logger.warning(f"Dropping unusable customer stats keys: {sorted(rejected)}")
            return cls.model_validate({k: v for k, v in bag.items() if k not in rejected})

    def to_bag(self) -> str:
        """Serialize back to the opaque JSON stored on the customer row."""
        unset = {name for name in KNOWN_FIELDS if getattr(self, name) is None}
        return json.dumps(self.model_dump(by_alias=True, exclude=unset))

    # =========================================================================
    # AGGREGATION
    # =========================================================================

    @property
    def orders(self) -> int:
        return self.order_count or 0

    @property
    def catering_requests(self) -> int:
        return self.catering_count or 0

    @property
    def spent(self) -> Decimal:
        return self.total_spent if self.total_spent is not None else Decimal("0")

    def record(self, channel: Channel, amount: Decimal) -> "CustomerStats":
        """Return a copy with one more transaction of ``amount`` on ``channel``."""
        update: dict = {"total_spent": self.spent + amount}
        if channel is Channel.CATERING:
            update["catering_count"] = self.catering_requests + 1
        else:
            update["order_count"] = self.orders + 1
        return self.model_copy(update=update)


class StatsMerger:
    """Folds one new transaction into a customer's stored stats bag."""

    def merge(
        self,
        raw_bag: Optional[str],
        channel: Channel,
        amount: Decimal,
    ) -> CustomerStats:
        stats = CustomerStats.from_bag(raw_bag).record(channel, amount)
        logger.debug(
            f"Merged {channel.value} of ${amount}: "
            f"orders={stats.orders} catering={stats.catering_requests} spent=${stats.spent}"
        )
        return stats

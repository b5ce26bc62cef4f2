"""Order intake: identity resolution, stats merging and the order ledger."""

from app.services.intake.ledger import LedgerEntry, OrderLedger, parse_delivery_date
from app.services.intake.pipeline import IntakePipeline, IntakeResult
from app.services.intake.resolver import ContactInfo, CustomerResolver, ResolvedCustomer
from app.services.intake.stats import CustomerStats, StatsMerger

__all__ = [
    "ContactInfo",
    "CustomerResolver",
    "CustomerStats",
    "IntakePipeline",
    "IntakeResult",
    "LedgerEntry",
    "OrderLedger",
    "ResolvedCustomer",
    "StatsMerger",
    "parse_delivery_date",
]

"""
Tests for CustomerStats and StatsMerger.

The stats bag is opaque JSON owned partly by other systems; only the three
known keys may change.
"""

import json
from decimal import Decimal

import pytest

from app.models import Channel
from app.services.intake.stats import CustomerStats, StatsMerger


@pytest.fixture
def merger() -> StatsMerger:
    return StatsMerger()


# -----------------------------
# Parsing the stored bag
# -----------------------------


class TestFromBag:
    """Lenient parsing of whatever is stored on the customer row."""

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_missing_bag_is_empty(self, raw) -> None:
        stats = CustomerStats.from_bag(raw)
        assert stats.orders == 0
        assert stats.catering_requests == 0
        assert stats.spent == Decimal("0")

    @pytest.mark.parametrize("raw", ["{not json", "[1, 2, 3]", "42", '"text"'])
    def test_malformed_bag_is_treated_as_empty(self, raw) -> None:
        stats = CustomerStats.from_bag(raw)
        assert stats.to_bag() == "{}"

    def test_known_keys_are_read(self) -> None:
        raw = json.dumps({"number_of_orders": 3, "number_of_catering_requests": 1, "total_spent": 99.5})
        stats = CustomerStats.from_bag(raw)
        assert stats.orders == 3
        assert stats.catering_requests == 1
        assert stats.spent == Decimal("99.5")

    def test_unusable_known_key_is_dropped_and_rest_kept(self) -> None:
        raw = json.dumps({"number_of_orders": "lots", "total_spent": 10, "loyalty_tier": "gold"})
        stats = CustomerStats.from_bag(raw)
        assert stats.orders == 0
        assert stats.spent == Decimal("10")
        assert json.loads(stats.to_bag())["loyalty_tier"] == "gold"


# -----------------------------
# Merging a new transaction
# -----------------------------


class TestMerge:
    """Folding one transaction into the bag."""

    def test_first_order_on_empty_bag(self, merger: StatsMerger) -> None:
        stats = merger.merge(None, Channel.ORDER, Decimal("42.50"))
        assert json.loads(stats.to_bag()) == {"number_of_orders": 1, "total_spent": 42.5}

    def test_catering_counter_is_separate(self, merger: StatsMerger) -> None:
        raw = json.dumps({"number_of_orders": 2, "total_spent": 20})
        stats = merger.merge(raw, Channel.CATERING, Decimal("150"))
        bag = json.loads(stats.to_bag())
        assert bag["number_of_orders"] == 2
        assert bag["number_of_catering_requests"] == 1
        assert bag["total_spent"] == 170

    def test_counter_increments_by_exactly_one(self, merger: StatsMerger) -> None:
        raw = json.dumps({"number_of_orders": 7, "total_spent": 1})
        stats = merger.merge(raw, Channel.ORDER, Decimal("1"))
        assert stats.orders == 8

    def test_unrelated_keys_preserved(self, merger: StatsMerger) -> None:
        raw = json.dumps({
            "number_of_orders": 1,
            "total_spent": 5,
            "favorite_dish": "Khao Soi",
            "referrals": 3,
            "notes": {"allergy": "peanuts"},
        })
        bag = json.loads(merger.merge(raw, Channel.ORDER, Decimal("5")).to_bag())
        assert bag["favorite_dish"] == "Khao Soi"
        assert bag["referrals"] == 3
        assert bag["notes"] == {"allergy": "peanuts"}

    def test_untouched_counter_is_not_written(self, merger: StatsMerger) -> None:
        bag = json.loads(merger.merge("{}", Channel.CATERING, Decimal("12")).to_bag())
        assert "number_of_orders" not in bag

    def test_merge_does_not_mutate_input_stats(self) -> None:
        stats = CustomerStats.from_bag('{"number_of_orders": 1}')
        stats.record(Channel.ORDER, Decimal("3"))
        assert stats.orders == 1

    def test_total_spent_keeps_cents(self, merger: StatsMerger) -> None:
        stats = merger.merge('{"total_spent": 0.1}', Channel.ORDER, Decimal("0.2"))
        assert stats.spent == Decimal("0.3")

    def test_unrelated_null_key_preserved(self, merger: StatsMerger) -> None:
        raw = json.dumps({"number_of_orders": 2, "total_spent": 10.0, "vip_tier": None})
        bag = json.loads(merger.merge(raw, Channel.ORDER, Decimal("1")).to_bag())
        assert bag == {"number_of_orders": 3, "total_spent": 11.0, "vip_tier": None}

    def test_keys_named_like_fields_are_foreign(self, merger: StatsMerger) -> None:
        """Only the stored key names feed the counters; look-alike keys ride along."""
        raw = json.dumps({"order_count": "legacy", "catering_count": 7})
        bag = json.loads(merger.merge(raw, Channel.ORDER, Decimal("1")).to_bag())
        assert bag == {
            "number_of_orders": 1,
            "total_spent": 1.0,
            "order_count": "legacy",
            "catering_count": 7,
        }

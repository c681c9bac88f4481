"""
Unit tests for reward_engine/state.py
Tests the monthly usage ledger replay.
"""

from decimal import Decimal

from reward_engine.models import CreditCard, RewardCap, RewardRule
from reward_engine.state import LoggedPurchase, build_usage_ledger, month_key


def dining_card():
    return CreditCard(
        id="dining-card",
        name="Dining Card",
        issuer="Bank",
        rewards=(
            RewardRule(id="dining-5pct", rate="0.05", reward_unit="cash", categories=["dining"],
                       cap=RewardCap(amount="20")),
            RewardRule(id="base", rate="0.01", reward_unit="cash", categories=["all"]),
        ),
    )


class TestMonthKey:
    """Tests for the month_key helper function."""

    def test_month_key_extracts_yyyy_mm(self):
        """Verify month_key correctly extracts YYYY-MM from a date string."""
        assert month_key("2025-01-15") == "2025-01"
        assert month_key("2024-12-31") == "2024-12"
        assert month_key("2025-02-01") == "2025-02"


class TestBuildUsageLedger:
    """Tests for the build_usage_ledger function."""

    def test_usage_per_rule(self):
        purchases = [
            LoggedPurchase("1", "2025-01-05", "100", "dining-card", "dining"),
            LoggedPurchase("2", "2025-01-10", "50", "dining-card", "groceries"),
            LoggedPurchase("3", "2025-01-15", "100", "dining-card", "dining"),
        ]

        ledger = build_usage_ledger(purchases, [dining_card()], "2025-01")

        assert ledger.period == "2025-01"
        assert ledger.used("dining-card", "dining-5pct") == Decimal("10")
        assert ledger.used("dining-card", "base") == Decimal("0.5")

    def test_usage_never_exceeds_cap(self):
        """Replayed purchases are capped just like live ones."""
        purchases = [
            LoggedPurchase("1", "2025-01-05", "300", "dining-card", "dining"),
            LoggedPurchase("2", "2025-01-06", "300", "dining-card", "dining"),
        ]

        ledger = build_usage_ledger(purchases, [dining_card()], "2025-01")

        assert ledger.used("dining-card", "dining-5pct") == Decimal("20")

    def test_only_target_month_is_counted(self):
        purchases = [
            LoggedPurchase("1", "2024-12-31", "100", "dining-card", "dining"),
            LoggedPurchase("2", "2025-01-01", "100", "dining-card", "dining"),
            LoggedPurchase("3", "2025-02-01", "100", "dining-card", "dining"),
        ]

        ledger = build_usage_ledger(purchases, [dining_card()], "2025-01")

        assert ledger.used("dining-card", "dining-5pct") == Decimal("5")

    def test_unknown_cards_are_ignored(self):
        purchases = [LoggedPurchase("1", "2025-01-05", "100", "gone", "dining")]

        ledger = build_usage_ledger(purchases, [dining_card()], "2025-01")

        assert ledger.usage == {}

    def test_invalid_purchases_are_skipped(self):
        purchases = [
            LoggedPurchase("1", "2025-01-05", "0", "dining-card", "dining"),
            LoggedPurchase("2", "2025-01-06", "100", "dining-card", "dining"),
        ]

        ledger = build_usage_ledger(purchases, [dining_card()], "2025-01")

        assert ledger.used("dining-card", "dining-5pct") == Decimal("5")

    def test_replay_order_is_by_date(self):
        """Input order does not matter; the replay runs in date order."""
        purchases = [
            LoggedPurchase("b", "2025-01-20", "300", "dining-card", "dining"),
            LoggedPurchase("a", "2025-01-02", "100", "dining-card", "dining"),
        ]

        forward = build_usage_ledger(purchases, [dining_card()], "2025-01")
        backward = build_usage_ledger(list(reversed(purchases)), [dining_card()], "2025-01")

        assert forward.usage == backward.usage

    def test_empty_history(self):
        ledger = build_usage_ledger([], [dining_card()], "2025-01")
        assert ledger.usage == {}

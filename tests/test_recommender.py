"""
Tests for card ranking: required scenarios, preference partition,
filters, determinism and the ranking helpers.
"""

import random
from decimal import Decimal

import pytest

from reward_engine.errors import InvalidInput
from reward_engine.models import CreditCard, Preferences, RewardCap, RewardRule, Transaction, UsageLedger
from reward_engine.recommender import (
    compare_two_cards,
    filter_by_reward_unit,
    get_best_card_for_reward_unit,
    get_top_recommendations,
    group_by_reward_unit,
    recommend_cards,
)


def card_a():
    return CreditCard(
        id="card-a",
        name="Card A",
        issuer="Bank A",
        rewards=(RewardRule(id="dining-2pct", rate="0.02", reward_unit="cash", categories=["dining"]),),
    )


def card_b():
    return CreditCard(
        id="card-b",
        name="Card B",
        issuer="Bank B",
        rewards=(RewardRule(id="mcd-5pct", rate="0.05", reward_unit="cash", specific_merchants=["mcdonalds"]),),
    )


def cash_card(rate="0.02", card_id="cash", name="Cash Card", **kwargs):
    return CreditCard(
        id=card_id,
        name=name,
        issuer="Bank",
        rewards=(RewardRule(id="all", rate=rate, reward_unit="cash", categories=["all"]),),
        **kwargs,
    )


def miles_card(rate="0.25", card_id="miles", name="Miles Card", **kwargs):
    return CreditCard(
        id=card_id,
        name=name,
        issuer="Bank",
        rewards=(RewardRule(id="all", rate=rate, reward_unit="miles", categories=["all"]),),
        **kwargs,
    )


def dining(amount="100", **kwargs):
    return Transaction(amount=Decimal(amount), category="dining", **kwargs)


class TestRequiredScenarios:
    def test_merchant_rule_outranks_category_rule(self):
        """Scenario A: the McDonald's 5% card beats the dining 2% card."""
        result = recommend_cards([card_a(), card_b()], dining(merchant_id="mcdonalds"))

        first, second = result.recommendations
        assert first.card.id == "card-b"
        assert first.rank == 1
        assert first.calculation.reward_amount == Decimal("5")
        assert second.card.id == "card-a"
        assert second.rank == 2
        assert second.calculation.reward_amount == Decimal("2")

    def test_cap_is_applied_when_ranking(self):
        """Scenario B: raw reward 50 is capped at 20."""
        card = CreditCard(
            id="capped",
            name="Capped",
            issuer="Bank",
            rewards=(RewardRule(id="r", rate="0.05", reward_unit="cash", categories=["all"],
                                cap=RewardCap(amount="20")),),
        )
        result = recommend_cards([card], dining("1000"))

        calc = result.recommendations[0].calculation
        assert calc.reward_amount == Decimal("20")
        assert calc.capped_out is True

    def test_preferred_reward_type_ranks_first(self):
        """Scenario C: the miles card wins under a miles preference despite lower net value."""
        cards = [cash_card(), miles_card()]
        plain = recommend_cards(cards, dining())
        assert plain.recommendations[0].card.id == "cash"

        result = recommend_cards(cards, dining(), Preferences(preferred_reward_types=["miles"]))
        assert result.recommendations[0].card.id == "miles"
        assert result.recommendations[0].net_value < result.recommendations[1].net_value


class TestRanking:
    def test_ranks_are_contiguous_and_first_is_recommended(self):
        cards = [cash_card(rate=r, card_id=f"c{i}", name=f"Card {i}") for i, r in enumerate(["0.01", "0.03", "0.02"])]
        result = recommend_cards(cards, dining())

        assert [rec.rank for rec in result.recommendations] == [1, 2, 3]
        assert [rec.is_recommended for rec in result.recommendations] == [True, False, False]
        assert result.has_recommendation is True

    def test_net_value_orders_cards(self):
        cards = [cash_card(rate="0.01", card_id="low", name="Low"), cash_card(rate="0.03", card_id="high", name="High")]
        result = recommend_cards(cards, dining())
        assert [rec.card.id for rec in result.recommendations] == ["high", "low"]

    def test_fees_lower_the_ranking(self):
        cards = [
            cash_card(rate="0.03", card_id="fee", name="Fee Card", fee_schedule={"overseas": "0.0195"}),
            cash_card(rate="0.02", card_id="nofee", name="No Fee Card"),
        ]
        result = recommend_cards(cards, dining(is_overseas=True))
        assert [rec.card.id for rec in result.recommendations] == ["nofee", "fee"]

    def test_name_breaks_ties(self):
        cards = [cash_card(card_id="z", name="Zeta"), cash_card(card_id="a", name="Alpha")]
        result = recommend_cards(cards, dining())
        assert [rec.card.name for rec in result.recommendations] == ["Alpha", "Zeta"]

    def test_result_is_independent_of_input_order(self):
        cards = [
            cash_card(rate="0.02", card_id="c1", name="Same"),
            cash_card(rate="0.02", card_id="c2", name="Same"),
            miles_card(rate="0.5", card_id="m1", name="Miles"),
            cash_card(rate="0.01", card_id="c3", name="Other"),
        ]
        expected = [rec.card.id for rec in recommend_cards(cards, dining()).recommendations]

        rng = random.Random(7)
        for _ in range(5):
            shuffled = cards[:]
            rng.shuffle(shuffled)
            assert [rec.card.id for rec in recommend_cards(shuffled, dining()).recommendations] == expected

    def test_preference_partition(self):
        cards = [
            cash_card(rate="0.05", card_id="cash-high", name="Cash High"),
            miles_card(rate="0.25", card_id="miles-low", name="Miles Low"),
            miles_card(rate="0.50", card_id="miles-high", name="Miles High"),
            cash_card(rate="0.01", card_id="cash-low", name="Cash Low"),
        ]
        result = recommend_cards(cards, dining(), Preferences(preferred_reward_types=["miles"]))

        units = [rec.calculation.reward_unit for rec in result.recommendations]
        assert units == ["miles", "miles", "cash", "cash"]
        assert [rec.card.id for rec in result.recommendations] == ["miles-high", "miles-low", "cash-high", "cash-low"]

    def test_preference_ignored_when_no_card_earns_it(self):
        cards = [cash_card(rate="0.01", card_id="low", name="Low"), cash_card(rate="0.03", card_id="high", name="High")]
        result = recommend_cards(cards, dining(), Preferences(preferred_reward_types=["points"]))
        assert [rec.card.id for rec in result.recommendations] == ["high", "low"]

    def test_card_without_matching_rule_stays_out_of_preferred_block(self):
        travel_miles = CreditCard(
            id="travel-miles",
            name="Travel Miles",
            issuer="Bank",
            rewards=(RewardRule(id="travel", rate="0.50", reward_unit="miles", categories=["travel"]),),
        )
        cards = [travel_miles, cash_card(rate="0.01", card_id="cash", name="Cash")]

        result = recommend_cards(cards, dining(), Preferences(preferred_reward_types=["miles"]))

        assert [rec.card.id for rec in result.recommendations] == ["cash", "travel-miles"]
        assert result.recommendations[1].calculation.reward_unit == "miles"

    def test_ledger_changes_ranking(self):
        capped = CreditCard(
            id="capped",
            name="Capped",
            issuer="Bank",
            rewards=(RewardRule(id="r", rate="0.05", reward_unit="cash", categories=["all"],
                                cap=RewardCap(amount="20")),),
        )
        cards = [capped, cash_card(rate="0.01", card_id="flat", name="Flat")]

        fresh = recommend_cards(cards, dining())
        assert fresh.recommendations[0].card.id == "capped"

        used_up = UsageLedger().add("capped", "r", Decimal("20"))
        result = recommend_cards(cards, dining(), ledger=used_up)
        assert result.recommendations[0].card.id == "flat"


class TestFilters:
    def test_inactive_cards_are_not_ranked(self):
        cards = [cash_card(card_id="on", name="On"), cash_card(card_id="off", name="Off", is_active=False)]
        result = recommend_cards(cards, dining())

        assert [rec.card.id for rec in result.recommendations] == ["on"]
        assert result.total_cards_evaluated == 2
        assert result.eligible_cards_count == 1

    def test_excluded_card_ids(self):
        cards = [card_a(), card_b()]
        result = recommend_cards(cards, dining(), Preferences(excluded_card_ids=["card-a"]))
        assert [rec.card.id for rec in result.recommendations] == ["card-b"]

    def test_max_annual_fee(self):
        cards = [cash_card(card_id="free", name="Free", annual_fee=0),
                 cash_card(rate="0.05", card_id="premium", name="Premium", annual_fee=2000)]
        result = recommend_cards(cards, dining(), Preferences(max_annual_fee=Decimal("500")))
        assert [rec.card.id for rec in result.recommendations] == ["free"]

    def test_min_reward_rate(self):
        cards = [cash_card(rate="0.01", card_id="low", name="Low"), cash_card(rate="0.03", card_id="high", name="High")]
        result = recommend_cards(cards, dining(), Preferences(min_reward_rate=Decimal("0.02")))
        assert [rec.card.id for rec in result.recommendations] == ["high"]
        assert result.eligible_cards_count == 1

    def test_no_cards(self):
        result = recommend_cards([], dining())
        assert result.recommendations == []
        assert result.has_recommendation is False
        assert result.total_cards_evaluated == 0


class TestInvalidInput:
    def test_invalid_amount_aborts_ranking(self):
        with pytest.raises(InvalidInput):
            recommend_cards([card_a()], Transaction(amount=Decimal("-1"), category="dining"))

    def test_missing_category_aborts_ranking(self):
        with pytest.raises(InvalidInput):
            recommend_cards([card_a()], Transaction(amount=Decimal("10"), category=""))


class TestHelpers:
    def result(self):
        cards = [
            cash_card(rate="0.03", card_id="cash-high", name="Cash High"),
            miles_card(rate="0.5", card_id="miles", name="Miles"),
            cash_card(rate="0.01", card_id="cash-low", name="Cash Low"),
        ]
        return recommend_cards(cards, dining())

    def test_top_recommendations(self):
        top = get_top_recommendations(self.result(), 2)
        assert [rec.card.id for rec in top] == ["cash-high", "miles"]

    def test_filter_by_reward_unit(self):
        assert [rec.card.id for rec in filter_by_reward_unit(self.result(), "cash")] == ["cash-high", "cash-low"]

    def test_group_by_reward_unit(self):
        grouped = group_by_reward_unit(self.result())
        assert [rec.card.id for rec in grouped["cash"]] == ["cash-high", "cash-low"]
        assert [rec.card.id for rec in grouped["miles"]] == ["miles"]
        assert grouped["points"] == []

    def test_best_card_for_reward_unit(self):
        result = self.result()
        assert get_best_card_for_reward_unit(result, "miles").card.id == "miles"
        assert get_best_card_for_reward_unit(result, "points") is None

    def test_compare_two_cards(self):
        result = self.result()
        low = filter_by_reward_unit(result, "cash")[-1]
        high = result.recommendations[0]
        comparison = compare_two_cards(low, high)

        assert comparison.is_better is True
        assert comparison.savings_amount == Decimal("2")
        assert comparison.savings_percentage == Decimal("200")

"""
Recommendation engine with preference-based ranking.
Evaluates every card in the catalog and orders them into a ranked list.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from reward_engine.calculator import calculate_net_value, calculate_reward, validate_transaction
from reward_engine.config import DEFAULT_CONFIG, EngineConfig
from reward_engine.models import (
    CardRecommendation,
    CreditCard,
    Preferences,
    RecommendationResult,
    RewardCalculation,
    RewardUnit,
    Transaction,
    UsageLedger,
)

logger = logging.getLogger(__name__)


def _filter_cards(cards: Iterable[CreditCard], preferences: Optional[Preferences]) -> list[CreditCard]:
    eligible = []
    excluded_ids = set(preferences.excluded_card_ids) if preferences else set()
    for card in cards:
        if not card.is_active:
            continue
        if card.id in excluded_ids:
            continue
        if preferences and preferences.max_annual_fee is not None:
            if (card.annual_fee or Decimal("0")) > preferences.max_annual_fee:
                continue
        eligible.append(card)
    return eligible


def recommend_cards(
    cards: list[CreditCard],
    transaction: Transaction,
    preferences: Optional[Preferences] = None,
    *,
    ledger: Optional[UsageLedger] = None,
    config: Optional[EngineConfig] = None,
) -> RecommendationResult:
    """
    Rank the catalog's cards for a transaction.

    Args:
        cards: every card supplied by the catalog, active or not
        transaction: normalized Transaction to evaluate
        preferences: optional Preferences (preferred reward types, filters)
        ledger: optional UsageLedger with this period's prior rewards
        config: optional EngineConfig (defaults if not provided)

    Returns:
        RecommendationResult with ranks 1..N

    Raises:
        InvalidInput: if the transaction is invalid (nothing is evaluated)

    Ordering:
    1. Cards whose applied rules earn a preferred reward type, as a block
       above all others (only if at least one evaluated card earns one)
    2. Higher net value
    3. Higher effective rate
    4. Card name, ascending (then card id)
    """
    if config is None:
        config = DEFAULT_CONFIG

    validate_transaction(transaction)

    eligible_cards = _filter_cards(cards, preferences)
    evaluated: list[tuple[CreditCard, RewardCalculation, Decimal]] = []
    for card in eligible_cards:
        calculation = calculate_reward(card, transaction, ledger=ledger, config=config)
        if preferences and preferences.min_reward_rate is not None:
            if calculation.effective_rate < preferences.min_reward_rate:
                continue
        evaluated.append((card, calculation, calculate_net_value(calculation, config)))

    preferred = set(preferences.preferred_reward_types) if preferences else set()

    def earns_preferred(calculation: RewardCalculation) -> bool:
        # A card with no applied rule earns nothing, whatever its default unit
        return bool(calculation.applied_rules) and calculation.reward_unit in preferred

    if preferred and not any(earns_preferred(calc) for _, calc, _ in evaluated):
        preferred = set()

    def sort_key(item):
        card, calculation, net_value = item
        return (
            0 if earns_preferred(calculation) else 1,
            -net_value,
            -calculation.effective_rate,
            card.name,
            card.id,
        )

    evaluated.sort(key=sort_key)

    recommendations = [
        CardRecommendation(
            card=card,
            calculation=calculation,
            rank=index,
            is_recommended=index == 1,
            net_value=net_value,
        )
        for index, (card, calculation, net_value) in enumerate(evaluated, 1)
    ]

    logger.debug(
        "Evaluated %d card(s), %d ranked, top=%s",
        len(cards),
        len(recommendations),
        recommendations[0].card.id if recommendations else None,
    )

    return RecommendationResult(
        recommendations=recommendations,
        transaction=transaction,
        total_cards_evaluated=len(cards),
        eligible_cards_count=len(recommendations),
        has_recommendation=bool(recommendations),
    )


def get_top_recommendations(result: RecommendationResult, count: int = 3) -> list[CardRecommendation]:
    return result.recommendations[:count]


def filter_by_reward_unit(result: RecommendationResult, reward_unit: str) -> list[CardRecommendation]:
    return [rec for rec in result.recommendations if rec.calculation.reward_unit == reward_unit]


def group_by_reward_unit(result: RecommendationResult) -> dict[str, list[CardRecommendation]]:
    """Group ranked cards by reward unit, keeping rank order within each group."""
    grouped: dict[str, list[CardRecommendation]] = {unit.value: [] for unit in RewardUnit}
    for rec in result.recommendations:
        grouped.setdefault(rec.calculation.reward_unit, []).append(rec)
    return grouped


def get_best_card_for_reward_unit(result: RecommendationResult, reward_unit: str) -> Optional[CardRecommendation]:
    filtered = filter_by_reward_unit(result, reward_unit)
    return filtered[0] if filtered else None


@dataclass(frozen=True)
class CardComparison:
    savings_amount: Decimal
    savings_percentage: Decimal
    is_better: bool


def compare_two_cards(current: CardRecommendation, alternative: CardRecommendation) -> CardComparison:
    """How much more net value the alternative card gives compared with the current one."""
    savings = alternative.net_value - current.net_value
    percentage = (savings / current.net_value * 100) if current.net_value > 0 else Decimal("0")
    return CardComparison(savings_amount=savings, savings_percentage=percentage, is_better=savings > 0)

"""
Card reward calculation.
Turns the rules matched for a card into a reward amount, applies monthly caps
against the caller's usage ledger, and works out fees and ranking value.
"""

import logging
from decimal import Decimal
from typing import Optional

from reward_engine.config import DEFAULT_CONFIG, EngineConfig
from reward_engine.errors import InvalidInput
from reward_engine.matcher import match_rules
from reward_engine.models import (
    CreditCard,
    RewardCalculation,
    RewardUnit,
    RuleContribution,
    Transaction,
    UsageLedger,
)
from reward_engine.normalize import normalize_category

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
OVERSEAS_FEE_KEY = "overseas"


def validate_transaction(transaction: Transaction) -> None:
    """
    Reject transactions the engine cannot evaluate.

    Raises:
        InvalidInput: if the amount is missing, not a number or not > 0,
            or if the category is missing
    """
    amount = transaction.amount
    if amount is None:
        raise InvalidInput("Transaction amount is required.", {"amount": None})
    if not isinstance(amount, Decimal) or not amount.is_finite():
        raise InvalidInput("Transaction amount must be a number.", {"amount": str(amount)})
    if amount <= 0:
        raise InvalidInput("Transaction amount must be greater than 0.", {"amount": str(amount)})
    if transaction.category is None or not str(transaction.category).strip():
        raise InvalidInput("Transaction category is required.", {"category": transaction.category})


def calculate_fees(card: CreditCard, transaction: Transaction) -> Decimal:
    """
    Transaction fees charged by the card's fee schedule.

    The 'overseas' entry applies to overseas transactions and to the
    'overseas' category, charged once when both hold. An entry keyed by the
    transaction's category applies to that category. Matching entries add up.
    """
    total = ZERO
    schedule = card.fee_schedule
    category = normalize_category(transaction.category)

    if OVERSEAS_FEE_KEY in schedule and (transaction.is_overseas or category == OVERSEAS_FEE_KEY):
        total += transaction.amount * schedule[OVERSEAS_FEE_KEY]
    if category != OVERSEAS_FEE_KEY and category in schedule:
        total += transaction.amount * schedule[category]
    return total


def value_score(amount: Decimal, unit: str, config: EngineConfig = DEFAULT_CONFIG) -> Decimal:
    """Convert a reward amount into the common ranking score (0 for unknown units)."""
    factor = config.factor_for(unit)
    if factor is None:
        return ZERO
    return amount * factor


def calculate_net_value(calculation: RewardCalculation, config: EngineConfig = DEFAULT_CONFIG) -> Decimal:
    """Net value (reward score minus fees) used for ranking."""
    return value_score(calculation.reward_amount, calculation.reward_unit, config) - calculation.fees


def calculate_reward(
    card: CreditCard,
    transaction: Transaction,
    *,
    ledger: Optional[UsageLedger] = None,
    config: Optional[EngineConfig] = None,
) -> RewardCalculation:
    """
    Calculate the reward one card earns on one transaction.

    Args:
        card: CreditCard from the catalog
        transaction: validated, normalized Transaction
        ledger: reward already earned this period (assumed empty if omitted)
        config: EngineConfig (defaults if not provided)

    Returns:
        RewardCalculation with the post-cap, post-stacking reward amount

    Cap handling:
        For a capped rule the headroom is cap minus prior usage. If the raw
        reward exceeds the headroom, the rule pays exactly the headroom and
        capped_out is set.
    """
    if config is None:
        config = DEFAULT_CONFIG
    if ledger is None:
        ledger = UsageLedger()

    validate_transaction(transaction)

    match = match_rules(card, transaction, config)
    fees = calculate_fees(card, transaction)
    warnings = list(match.warnings)

    if not match.applied:
        return RewardCalculation(
            card_id=card.id,
            reward_amount=ZERO,
            reward_unit=card.default_reward_unit,
            effective_rate=ZERO,
            applied_rules=[],
            fees=fees,
            capped_out=False,
            rule_breakdown=[],
            skipped_rules=match.skipped,
            warnings=warnings,
        )

    reward_unit = match.applied[0].rule.reward_unit
    total = ZERO
    capped_out = False
    breakdown: list[RuleContribution] = []

    for position, candidate in enumerate(match.applied):
        rule = candidate.rule
        raw_reward = transaction.amount * rule.rate
        amount = raw_reward
        headroom = None
        capped = False

        if rule.cap is not None:
            headroom = max(ZERO, rule.cap.amount - ledger.used(card.id, rule.id))
            if raw_reward > headroom:
                amount = headroom
                capped = True
                capped_out = True
                logger.debug(
                    "Card %s rule %s capped: raw %s, headroom %s", card.id, rule.id, raw_reward, headroom
                )

        total += amount
        breakdown.append(
            RuleContribution(
                rule_id=rule.id,
                match_kind=candidate.kind,
                rate=rule.rate,
                raw_amount=raw_reward,
                amount=amount,
                capped=capped,
                cap_headroom=headroom,
                contribution_type="primary" if position == 0 else "stacked",
                description=rule.description,
                is_promotional=rule.is_promotional,
                valid_until=rule.valid_until,
            )
        )

    if config.factor_for(reward_unit) is None:
        message = f"Unknown reward unit '{reward_unit}' on card {card.id}; valued at 0 for ranking"
        logger.warning(message)
        warnings.append(message)

    return RewardCalculation(
        card_id=card.id,
        reward_amount=total,
        reward_unit=reward_unit,
        effective_rate=total / transaction.amount,
        applied_rules=[c.rule.id for c in match.applied],
        fees=fees,
        capped_out=capped_out,
        rule_breakdown=breakdown,
        skipped_rules=match.skipped,
        warnings=warnings,
    )


def format_reward(calculation: RewardCalculation) -> str:
    """Format a reward amount for display, e.g. '$5.00' or '400 miles'."""
    amount = calculation.reward_amount
    unit = calculation.reward_unit
    if unit == RewardUnit.CASH.value:
        return f"${amount:.2f}"
    if unit in (RewardUnit.MILES.value, RewardUnit.POINTS.value):
        return f"{amount.quantize(Decimal('1'), rounding='ROUND_HALF_UP')} {unit}"
    return f"{amount:.2f} {unit}"


def format_effective_rate(calculation: RewardCalculation) -> str:
    """Format the effective rate as a percentage, e.g. '2.00%'."""
    return f"{calculation.effective_rate * 100:.2f}%"

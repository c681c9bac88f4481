"""
Rule matching: decide which of a card's reward rules apply to a transaction.

Each rule is classified into a MatchKind (merchant-specific, category-general
or wildcard). Among the candidates a single winner is chosen by

    explicit priority > specificity > rate > declaration order

and, when stacking is allowed, stackable rules of other specificity classes
are applied on top of a winner that is stackable or tied with a stackable
rule. Stacked rules must share the winner's reward unit.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from reward_engine.config import DEFAULT_CONFIG, EngineConfig, UnknownUnitPolicy
from reward_engine.models import (
    CreditCard,
    MatchKind,
    PaymentType,
    RewardRule,
    SkippedRule,
    SkipReason,
    Transaction,
)
from reward_engine.normalize import (
    WILDCARD_CATEGORY,
    normalize_category,
    normalize_merchant_id,
    normalize_rule_category,
)

logger = logging.getLogger(__name__)

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


@dataclass(frozen=True)
class Candidate:
    """An eligible rule together with how it matched and where it was declared."""
    rule: RewardRule
    kind: MatchKind
    index: int

    def sort_key(self) -> tuple:
        has_priority = self.rule.priority is not None
        return (
            has_priority,
            self.rule.priority if has_priority else 0,
            int(self.kind),
            self.rule.rate,
            -self.index,
        )

    def tie_key(self) -> tuple:
        # Same as sort_key without declaration order
        return self.sort_key()[:-1]


@dataclass
class MatchResult:
    card_id: str
    applied: list[Candidate] = field(default_factory=list)
    candidates: list[Candidate] = field(default_factory=list)
    skipped: list[SkippedRule] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _canonical_rule_categories(rule: RewardRule, raw_categories) -> set[str]:
    """Canonical categories named by a rule; unknown names are logged and dropped."""
    canonical = set()
    for raw in raw_categories:
        category = normalize_rule_category(raw)
        if category is None:
            logger.warning("Rule %s names unknown category '%s'; ignoring it", rule.id, raw)
            continue
        canonical.add(category)
    return canonical


def classify_rule(rule: RewardRule, transaction: Transaction) -> Optional[MatchKind]:
    """
    Return how a rule targets the transaction, ignoring exclusions and conditions.

    Returns None if the rule targets neither the merchant nor the category.
    """
    merchant_id = normalize_merchant_id(transaction.merchant_id)
    if merchant_id and merchant_id in {normalize_merchant_id(m) for m in rule.specific_merchants}:
        return MatchKind.MERCHANT_SPECIFIC

    rule_categories = _canonical_rule_categories(rule, rule.categories)
    if normalize_category(transaction.category) in rule_categories:
        return MatchKind.CATEGORY_GENERAL
    if WILDCARD_CATEGORY in rule_categories:
        return MatchKind.WILDCARD
    return None


def _skip(rule: RewardRule, reason: SkipReason, threshold=None, actual_value=None) -> SkippedRule:
    return SkippedRule(
        rule_id=rule.id,
        reason=reason,
        rate=rule.rate,
        description=rule.description,
        threshold=threshold,
        actual_value=actual_value,
    )


def check_validity(rule: RewardRule, transaction: Transaction) -> Optional[SkippedRule]:
    """Check the rule's validity window against the transaction date."""
    if transaction.occurred_at is None:
        return None
    day = transaction.occurred_at.date() if hasattr(transaction.occurred_at, "date") else transaction.occurred_at
    if rule.valid_from is not None and day < rule.valid_from:
        return _skip(rule, SkipReason.NOT_YET_VALID, rule.valid_from, day)
    if rule.valid_until is not None and day > rule.valid_until:
        return _skip(rule, SkipReason.EXPIRED, rule.valid_until, day)
    return None


def check_exclusions(rule: RewardRule, transaction: Transaction) -> Optional[SkippedRule]:
    merchant_id = normalize_merchant_id(transaction.merchant_id)
    if merchant_id and merchant_id in {normalize_merchant_id(m) for m in rule.excluded_merchants}:
        return _skip(rule, SkipReason.EXCLUDED_MERCHANT, actual_value=merchant_id)

    category = normalize_category(transaction.category)
    if rule.excluded_categories and category in _canonical_rule_categories(rule, rule.excluded_categories):
        return _skip(rule, SkipReason.EXCLUDED_CATEGORY, actual_value=category)
    return None


def check_conditions(
    rule: RewardRule, transaction: Transaction, config: EngineConfig = DEFAULT_CONFIG
) -> Optional[SkippedRule]:
    """Check payment type, currency, weekday, amount and region restrictions."""
    conditions = rule.conditions
    if conditions is None:
        return None

    if conditions.payment_type and conditions.payment_type != transaction.payment_type:
        return _skip(rule, SkipReason.PAYMENT_TYPE, conditions.payment_type, transaction.payment_type)

    if conditions.currency:
        required = conditions.currency.lower()
        if required == "foreign":
            if transaction.currency == config.home_currency:
                return _skip(rule, SkipReason.CURRENCY, "foreign", transaction.currency)
        elif required.upper() != transaction.currency:
            return _skip(rule, SkipReason.CURRENCY, required.upper(), transaction.currency)

    if transaction.currency in conditions.excluded_currencies:
        return _skip(rule, SkipReason.CURRENCY, sorted(conditions.excluded_currencies), transaction.currency)

    if conditions.days_of_week and transaction.occurred_at is not None:
        weekday = WEEKDAYS[transaction.occurred_at.weekday()]
        if weekday not in conditions.days_of_week:
            return _skip(rule, SkipReason.DAY_OF_WEEK, sorted(conditions.days_of_week), weekday)

    if conditions.min_amount is not None and transaction.amount < conditions.min_amount:
        return _skip(rule, SkipReason.MIN_AMOUNT, conditions.min_amount, transaction.amount)

    if conditions.max_amount is not None and transaction.amount > conditions.max_amount:
        return _skip(rule, SkipReason.MAX_AMOUNT, conditions.max_amount, transaction.amount)

    if transaction.location and transaction.location in conditions.excluded_regions:
        online = transaction.payment_type == PaymentType.ONLINE.value
        if not (conditions.online_exempt and online):
            return _skip(rule, SkipReason.REGION, sorted(conditions.excluded_regions), transaction.location)

    return None


def find_candidates(
    card: CreditCard, transaction: Transaction, config: EngineConfig = DEFAULT_CONFIG
) -> MatchResult:
    """Evaluate every rule on the card and collect the eligible ones."""
    result = MatchResult(card_id=card.id)

    for index, rule in enumerate(card.rewards):
        if rule.is_unmatchable:
            logger.warning(
                "Rule %s on card %s has no categories or specific merchants and can never match",
                rule.id,
                card.id,
            )
            continue

        kind = classify_rule(rule, transaction)
        if kind is None:
            continue

        veto = (
            check_validity(rule, transaction)
            or check_exclusions(rule, transaction)
            or check_conditions(rule, transaction, config)
        )
        if veto is not None:
            result.skipped.append(veto)
            continue

        if config.factor_for(rule.reward_unit) is None and config.unknown_unit_policy == UnknownUnitPolicy.REJECT:
            message = f"Rule {rule.id} uses unknown reward unit '{rule.reward_unit}' and was rejected"
            logger.warning(message)
            result.warnings.append(message)
            result.skipped.append(_skip(rule, SkipReason.UNKNOWN_UNIT, actual_value=rule.reward_unit))
            continue

        result.candidates.append(Candidate(rule=rule, kind=kind, index=index))

    return result


def _stacked_rules(primary: Candidate, candidates: list[Candidate]) -> list[Candidate]:
    applied = [primary]
    for kind in sorted(MatchKind, reverse=True):
        if kind == primary.kind:
            continue
        pool = [
            c for c in candidates
            if c.kind == kind and c.rule.stackable and c.rule.reward_unit == primary.rule.reward_unit
        ]
        if pool:
            applied.append(max(pool, key=Candidate.sort_key))
    return applied


def match_rules(
    card: CreditCard, transaction: Transaction, config: EngineConfig = DEFAULT_CONFIG
) -> MatchResult:
    """
    Resolve the applied rule set for one card.

    Returns a MatchResult whose `applied` list holds exactly one candidate for
    a non-stacking resolution, the stacked set otherwise, and nothing when no
    rule matched.
    """
    result = find_candidates(card, transaction, config)
    if not result.candidates:
        logger.debug("Card %s: no matching rules", card.id)
        return result

    winner = max(result.candidates, key=Candidate.sort_key)

    # A stackable rule tied with the winner lets the winner stack, but never
    # replaces it as the primary rule
    can_stack = config.allow_stacking and any(
        c.rule.stackable and c.tie_key() == winner.tie_key() for c in result.candidates
    )
    result.applied = _stacked_rules(winner, result.candidates) if can_stack else [winner]
    logger.debug(
        "Card %s: applied %s out of %d candidate(s)",
        card.id,
        [c.rule.id for c in result.applied],
        len(result.candidates),
    )
    return result

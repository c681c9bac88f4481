"""
Recommendation API schemas - request/response DTOs for the reward engine.

Request models carry raw user input; `to_transaction()` / `to_preferences()`
hand it to the engine's normalizer. Response models flatten engine results
into JSON-friendly floats.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from reward_engine.calculator import format_effective_rate, format_reward
from reward_engine.models import (
    CardRecommendation,
    Preferences,
    RecommendationResult,
    RuleContribution,
    SkippedRule,
    Transaction,
)
from reward_engine.normalize import build_transaction


class TransactionIn(BaseModel):
    """
    A purchase as the user describes it.

    Usage:
        TransactionIn(amount=Decimal("250"), category="Restaurant", merchant="Sushiro")
    """

    # amount and category are validated by the engine so that its
    # InvalidInput error reaches the client as VALIDATION_ERROR
    amount: Optional[Decimal] = Field(None, description="Purchase amount")
    category: Optional[str] = Field(None, description="Raw category, e.g. 'Restaurant'")
    merchant: Optional[str] = Field(None, description="Raw merchant name, e.g. 'Circle K'")
    currency: str = Field(default="HKD", description="ISO currency code")
    is_overseas: bool = False
    occurred_at: Optional[datetime] = None
    payment_type: Optional[str] = Field(None, description="online | offline | contactless | recurring")
    location: Optional[str] = None

    def to_transaction(self) -> Transaction:
        return build_transaction(
            self.amount,
            self.category,
            self.merchant,
            currency=self.currency,
            is_overseas=self.is_overseas,
            occurred_at=self.occurred_at,
            payment_type=self.payment_type,
            location=self.location,
        )


class PreferencesIn(BaseModel):
    preferred_reward_types: List[str] = Field(default_factory=list)
    excluded_card_ids: List[str] = Field(default_factory=list)
    max_annual_fee: Optional[Decimal] = Field(None, ge=0)
    min_reward_rate: Optional[Decimal] = Field(None, ge=0)

    @field_validator("preferred_reward_types")
    @classmethod
    def lowercase_units(cls, value: List[str]) -> List[str]:
        return [unit.strip().lower() for unit in value if unit and unit.strip()]

    def to_preferences(self) -> Preferences:
        return Preferences(
            preferred_reward_types=self.preferred_reward_types,
            excluded_card_ids=self.excluded_card_ids,
            max_annual_fee=self.max_annual_fee,
            min_reward_rate=self.min_reward_rate,
        )


class PriorUsageIn(BaseModel):
    """Reward already earned this period under one capped rule."""

    card_id: str
    rule_id: str
    amount: Decimal = Field(..., ge=0)


class RecommendationRequest(BaseModel):
    transaction: TransactionIn
    preferences: Optional[PreferencesIn] = None
    prior_usage: List[PriorUsageIn] = Field(default_factory=list)
    period: Optional[str] = Field(None, description="Usage period as YYYY-MM")


def _num(value: Optional[Decimal]) -> Optional[float]:
    return None if value is None else float(value)


class RuleContributionOut(BaseModel):
    rule_id: str
    match_kind: str
    contribution_type: str
    rate: float
    raw_amount: float
    amount: float
    capped: bool
    cap_headroom: Optional[float] = None
    description: str = ""
    is_promotional: bool = False
    valid_until: Optional[date] = None

    @classmethod
    def from_contribution(cls, item: RuleContribution) -> "RuleContributionOut":
        return cls(
            rule_id=item.rule_id,
            match_kind=item.match_kind.name.lower(),
            contribution_type=item.contribution_type,
            rate=float(item.rate),
            raw_amount=float(item.raw_amount),
            amount=float(item.amount),
            capped=item.capped,
            cap_headroom=_num(item.cap_headroom),
            description=item.description,
            is_promotional=item.is_promotional,
            valid_until=item.valid_until,
        )


class SkippedRuleOut(BaseModel):
    rule_id: str
    reason: str
    rate: float
    description: str = ""
    threshold: Optional[Any] = None
    actual_value: Optional[Any] = None

    @classmethod
    def from_skipped(cls, item: SkippedRule) -> "SkippedRuleOut":
        def plain(value: Any) -> Any:
            if isinstance(value, Decimal):
                return float(value)
            if isinstance(value, (set, frozenset, tuple)):
                return sorted(str(v) for v in value)
            if isinstance(value, (date, datetime)):
                return value.isoformat()
            return value

        return cls(
            rule_id=item.rule_id,
            reason=item.reason.value,
            rate=float(item.rate),
            description=item.description,
            threshold=plain(item.threshold),
            actual_value=plain(item.actual_value),
        )


class CardRecommendationOut(BaseModel):
    rank: int
    is_recommended: bool
    card_id: str
    card_name: str
    issuer: str
    reward_amount: float
    reward_unit: str
    reward_display: str
    effective_rate: float
    effective_rate_str: str
    net_value: float
    fees: float
    capped_out: bool
    applied_rules: List[str]
    rule_breakdown: List[RuleContributionOut]
    skipped_rules: List[SkippedRuleOut]
    warnings: List[str]

    @classmethod
    def from_recommendation(cls, rec: CardRecommendation) -> "CardRecommendationOut":
        calc = rec.calculation
        return cls(
            rank=rec.rank,
            is_recommended=rec.is_recommended,
            card_id=rec.card.id,
            card_name=rec.card.name,
            issuer=rec.card.issuer,
            reward_amount=float(calc.reward_amount),
            reward_unit=calc.reward_unit,
            reward_display=format_reward(calc),
            effective_rate=float(calc.effective_rate),
            effective_rate_str=format_effective_rate(calc),
            net_value=float(rec.net_value),
            fees=float(calc.fees),
            capped_out=calc.capped_out,
            applied_rules=list(calc.applied_rules),
            rule_breakdown=[RuleContributionOut.from_contribution(c) for c in calc.rule_breakdown],
            skipped_rules=[SkippedRuleOut.from_skipped(s) for s in calc.skipped_rules],
            warnings=list(calc.warnings),
        )


class RecommendationResponse(BaseModel):
    recommended: Optional[CardRecommendationOut] = None
    ranked_cards: List[CardRecommendationOut]
    category: str
    merchant_id: Optional[str] = None
    total_cards_evaluated: int
    eligible_cards_count: int
    has_recommendation: bool

    @classmethod
    def from_result(cls, result: RecommendationResult) -> "RecommendationResponse":
        ranked = [CardRecommendationOut.from_recommendation(rec) for rec in result.recommendations]
        return cls(
            recommended=ranked[0] if ranked else None,
            ranked_cards=ranked,
            category=result.transaction.category,
            merchant_id=result.transaction.merchant_id,
            total_cards_evaluated=result.total_cards_evaluated,
            eligible_cards_count=result.eligible_cards_count,
            has_recommendation=result.has_recommendation,
        )

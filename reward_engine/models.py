"""
Data models for the card reward engine.
All models are dataclasses for simplicity and type safety.
Catalog entities (cards, rules) are frozen: the engine only ever reads them.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple


class RewardUnit(str, Enum):
    CASH = "cash"
    MILES = "miles"
    POINTS = "points"


class CapPeriod(str, Enum):
    MONTHLY = "monthly"


class PaymentType(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    CONTACTLESS = "contactless"
    RECURRING = "recurring"


class MatchKind(int, Enum):
    """How a rule matched a transaction. Higher value = more specific."""
    WILDCARD = 1
    CATEGORY_GENERAL = 2
    MERCHANT_SPECIFIC = 3


class SkipReason(str, Enum):
    NOT_YET_VALID = "not-yet-valid"
    EXPIRED = "expired"
    EXCLUDED_MERCHANT = "excluded-merchant"
    EXCLUDED_CATEGORY = "excluded-category"
    PAYMENT_TYPE = "payment-type"
    CURRENCY = "currency"
    DAY_OF_WEEK = "day-of-week"
    MIN_AMOUNT = "min-amount"
    MAX_AMOUNT = "max-amount"
    REGION = "region"
    UNKNOWN_UNIT = "unknown-unit"


def to_decimal(value: Any) -> Decimal:
    """Convert ints, floats and strings to Decimal via their string form."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _optional_decimal(value: Any) -> Optional[Decimal]:
    return None if value is None else to_decimal(value)


def _frozen(values: Optional[Iterable[str]]) -> FrozenSet[str]:
    if not values:
        return frozenset()
    if isinstance(values, str):
        return frozenset([values])
    return frozenset(values)


@dataclass(frozen=True)
class RewardCap:
    """Maximum reward a rule pays out within one period, in the rule's own unit."""
    amount: Decimal
    period: CapPeriod = CapPeriod.MONTHLY

    def __post_init__(self):
        object.__setattr__(self, "amount", to_decimal(self.amount))
        object.__setattr__(self, "period", CapPeriod(self.period))
        if self.amount < 0:
            raise ValueError("cap amount must be non-negative")


@dataclass(frozen=True)
class RuleConditions:
    """
    Optional restrictions a transaction must satisfy for a rule to apply.

    Fields:
    - payment_type: only transactions paid this way qualify
    - currency: a currency code, or 'foreign' for anything but the home currency
    - excluded_currencies: currencies that never qualify
    - days_of_week: lower-case weekday names ('monday' ... 'sunday')
    - min_amount / max_amount: inclusive transaction amount bounds
    - excluded_regions: transaction locations that do not qualify
    - online_exempt: online payments still qualify in excluded regions
    """
    payment_type: Optional[str] = None
    currency: Optional[str] = None
    excluded_currencies: FrozenSet[str] = field(default_factory=frozenset)
    days_of_week: FrozenSet[str] = field(default_factory=frozenset)
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    excluded_regions: FrozenSet[str] = field(default_factory=frozenset)
    online_exempt: bool = False

    def __post_init__(self):
        object.__setattr__(self, "excluded_currencies", frozenset(c.upper() for c in _frozen(self.excluded_currencies)))
        object.__setattr__(self, "days_of_week", frozenset(d.lower() for d in _frozen(self.days_of_week)))
        object.__setattr__(self, "excluded_regions", _frozen(self.excluded_regions))
        object.__setattr__(self, "min_amount", _optional_decimal(self.min_amount))
        object.__setattr__(self, "max_amount", _optional_decimal(self.max_amount))


@dataclass(frozen=True)
class RewardRule:
    """
    One way a card earns rewards.

    A rule targets categories (possibly the wildcard 'all') and/or specific
    merchants. A rule with neither can never match.
    """
    id: str
    rate: Decimal
    reward_unit: str
    categories: FrozenSet[str] = field(default_factory=frozenset)
    specific_merchants: FrozenSet[str] = field(default_factory=frozenset)
    excluded_merchants: FrozenSet[str] = field(default_factory=frozenset)
    excluded_categories: FrozenSet[str] = field(default_factory=frozenset)
    cap: Optional[RewardCap] = None
    priority: Optional[int] = None
    stackable: bool = False
    conditions: Optional[RuleConditions] = None
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None
    description: str = ""
    is_promotional: bool = False

    def __post_init__(self):
        object.__setattr__(self, "rate", to_decimal(self.rate))
        object.__setattr__(self, "reward_unit", str(getattr(self.reward_unit, "value", self.reward_unit)).lower())
        object.__setattr__(self, "categories", _frozen(self.categories))
        object.__setattr__(self, "specific_merchants", _frozen(self.specific_merchants))
        object.__setattr__(self, "excluded_merchants", _frozen(self.excluded_merchants))
        object.__setattr__(self, "excluded_categories", _frozen(self.excluded_categories))
        if self.rate < 0:
            raise ValueError(f"rule {self.id}: rate must be non-negative")

    @property
    def is_unmatchable(self) -> bool:
        return not self.categories and not self.specific_merchants


@dataclass(frozen=True)
class CreditCard:
    """
    A card as supplied by the catalog.

    Fields:
    - rewards: reward rules in declaration order (order breaks final ties)
    - fee_schedule: canonical category or 'overseas' -> fee rate on the amount
    """
    id: str
    name: str
    issuer: str
    rewards: Tuple[RewardRule, ...] = ()
    is_active: bool = True
    annual_fee: Optional[Decimal] = None
    last_updated: Optional[datetime] = None
    fee_schedule: Mapping[str, Decimal] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "rewards", tuple(self.rewards))
        object.__setattr__(self, "annual_fee", _optional_decimal(self.annual_fee))
        object.__setattr__(
            self, "fee_schedule", {str(k).lower(): to_decimal(v) for k, v in dict(self.fee_schedule).items()}
        )

    @property
    def default_reward_unit(self) -> str:
        """Unit of the first declared rule; used when nothing matches."""
        return self.rewards[0].reward_unit if self.rewards else RewardUnit.CASH.value


@dataclass
class Transaction:
    """
    A purchase we want a card recommendation for.

    Fields:
    - amount: purchase amount (must be > 0)
    - category: canonical spending category
    - occurred_at: when the purchase happens (validity windows, weekday rules)
    - currency: ISO currency code
    - merchant_id: merchant slug, if known
    - is_overseas: charged overseas (overseas fee entries apply)
    - payment_type: 'online' | 'offline' | 'contactless' | 'recurring'
    - location: country/region code for geographic restrictions
    """
    amount: Decimal
    category: str
    occurred_at: Optional[datetime] = None
    currency: str = "HKD"
    merchant_id: Optional[str] = None
    is_overseas: bool = False
    payment_type: Optional[str] = None
    location: Optional[str] = None

    def __post_init__(self):
        if self.amount is not None and not isinstance(self.amount, Decimal):
            try:
                self.amount = Decimal(str(self.amount))
            except InvalidOperation:
                pass  # rejected later by validate_transaction
        if self.currency:
            self.currency = self.currency.upper()


@dataclass
class Preferences:
    """
    Caller preferences for ranking.

    Fields:
    - preferred_reward_types: units ranked as a block above all others
    - excluded_card_ids: cards to leave out entirely
    - max_annual_fee: leave out cards with a higher annual fee
    - min_reward_rate: leave out cards whose effective rate is lower
    """
    preferred_reward_types: list[str] = field(default_factory=list)
    excluded_card_ids: list[str] = field(default_factory=list)
    max_annual_fee: Optional[Decimal] = None
    min_reward_rate: Optional[Decimal] = None

    def __post_init__(self):
        self.preferred_reward_types = [str(getattr(u, "value", u)).lower() for u in self.preferred_reward_types]
        self.max_annual_fee = _optional_decimal(self.max_annual_fee)
        self.min_reward_rate = _optional_decimal(self.min_reward_rate)


@dataclass(frozen=True)
class RuleContribution:
    """How a single applied rule contributed to a card's reward."""
    rule_id: str
    match_kind: MatchKind
    rate: Decimal
    raw_amount: Decimal
    amount: Decimal
    capped: bool
    cap_headroom: Optional[Decimal]
    contribution_type: str  # "primary" | "stacked"
    description: str = ""
    is_promotional: bool = False
    valid_until: Optional[date] = None


@dataclass(frozen=True)
class SkippedRule:
    """A rule that targeted the transaction but was vetoed."""
    rule_id: str
    reason: SkipReason
    rate: Decimal
    description: str = ""
    threshold: Optional[Any] = None
    actual_value: Optional[Any] = None


@dataclass
class RewardCalculation:
    """
    Reward earned by one card for one transaction.

    reward_amount is in the card's native reward_unit, after caps and stacking.
    """
    card_id: str
    reward_amount: Decimal
    reward_unit: str
    effective_rate: Decimal
    applied_rules: list[str]
    fees: Decimal
    capped_out: bool
    rule_breakdown: list[RuleContribution] = field(default_factory=list)
    skipped_rules: list[SkippedRule] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class CardRecommendation:
    card: CreditCard
    calculation: RewardCalculation
    rank: int
    is_recommended: bool
    net_value: Decimal


@dataclass
class RecommendationResult:
    """
    The complete recommendation output for a transaction.

    Fields:
    - recommendations: ranked cards, best first
    - transaction: the transaction that was analysed
    - total_cards_evaluated: cards supplied by the catalog (active or not)
    - eligible_cards_count: cards that made it into the ranking
    - has_recommendation: whether at least one card was ranked
    """
    recommendations: list[CardRecommendation]
    transaction: Transaction
    total_cards_evaluated: int
    eligible_cards_count: int
    has_recommendation: bool


@dataclass(frozen=True)
class UsageLedger:
    """
    Reward already earned per (card, rule) during one billing period.

    Owned by the caller and passed into each call; recording returns a new
    ledger rather than changing this one.
    """
    period: Optional[str] = None  # YYYY-MM
    usage: Mapping[Tuple[str, str], Decimal] = field(default_factory=dict)

    def used(self, card_id: str, rule_id: str) -> Decimal:
        return self.usage.get((card_id, rule_id), Decimal("0"))

    def add(self, card_id: str, rule_id: str, amount: Decimal) -> "UsageLedger":
        usage: Dict[Tuple[str, str], Decimal] = dict(self.usage)
        usage[(card_id, rule_id)] = usage.get((card_id, rule_id), Decimal("0")) + to_decimal(amount)
        return UsageLedger(period=self.period, usage=usage)

    def record(self, calculation: RewardCalculation) -> "UsageLedger":
        """Return a ledger that also counts every rule contribution of a calculation."""
        ledger = self
        for contribution in calculation.rule_breakdown:
            ledger = ledger.add(calculation.card_id, contribution.rule_id, contribution.amount)
        return ledger

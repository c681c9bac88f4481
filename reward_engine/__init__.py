from .calculator import (
    calculate_fees,
    calculate_net_value,
    calculate_reward,
    format_effective_rate,
    format_reward,
    validate_transaction,
    value_score,
)
from .config import EngineConfig, UnknownUnitPolicy
from .errors import CatalogError, InvalidInput
from .matcher import match_rules
from .models import (
    CardRecommendation,
    CreditCard,
    Preferences,
    RecommendationResult,
    RewardCalculation,
    RewardCap,
    RewardRule,
    RewardUnit,
    RuleConditions,
    Transaction,
    UsageLedger,
)
from .normalize import build_transaction, normalize_category, normalize_merchant_id
from .recommender import (
    compare_two_cards,
    filter_by_reward_unit,
    get_best_card_for_reward_unit,
    get_top_recommendations,
    group_by_reward_unit,
    recommend_cards,
)

__all__ = [
    "calculate_fees",
    "calculate_net_value",
    "calculate_reward",
    "format_effective_rate",
    "format_reward",
    "validate_transaction",
    "value_score",
    "EngineConfig",
    "UnknownUnitPolicy",
    "CatalogError",
    "InvalidInput",
    "match_rules",
    "CardRecommendation",
    "CreditCard",
    "Preferences",
    "RecommendationResult",
    "RewardCalculation",
    "RewardCap",
    "RewardRule",
    "RewardUnit",
    "RuleConditions",
    "Transaction",
    "UsageLedger",
    "build_transaction",
    "normalize_category",
    "normalize_merchant_id",
    "compare_two_cards",
    "filter_by_reward_unit",
    "get_best_card_for_reward_unit",
    "get_top_recommendations",
    "group_by_reward_unit",
    "recommend_cards",
]

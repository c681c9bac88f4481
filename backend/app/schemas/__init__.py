from .recommendation_schemas import (
    CardRecommendationOut,
    PreferencesIn,
    PriorUsageIn,
    RecommendationRequest,
    RecommendationResponse,
    TransactionIn,
)

__all__ = [
    "CardRecommendationOut",
    "PreferencesIn",
    "PriorUsageIn",
    "RecommendationRequest",
    "RecommendationResponse",
    "TransactionIn",
]

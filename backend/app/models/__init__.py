from .card_reward_rule import CardRewardRule, CardRewardRuleResponse
from .card_fee import CardFee, CardFeeResponse
from .card_catalogue import CardCatalogue, CardCatalogueResponse

__all__ = [
    "CardRewardRule",
    "CardRewardRuleResponse",
    "CardFee",
    "CardFeeResponse",
    "CardCatalogue",
    "CardCatalogueResponse",
]

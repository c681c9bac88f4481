from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from app.services.catalog_service import CatalogService

from reward_engine.config import EngineConfig
from reward_engine.models import Preferences, RecommendationResult, Transaction, UsageLedger
from reward_engine.recommender import recommend_cards

logger = logging.getLogger(__name__)


class RecommendationService:
    def __init__(self, db: Session, config: Optional[EngineConfig] = None):
        self.db = db
        self.catalog = CatalogService(db)
        self.config = config or EngineConfig.from_env()

    @staticmethod
    def build_ledger(
        prior_usage: Iterable[tuple[str, str, Decimal]], period: Optional[str] = None
    ) -> UsageLedger:
        """Turn caller-supplied (card_id, rule_id, amount) entries into a UsageLedger."""
        ledger = UsageLedger(period=period)
        for card_id, rule_id, amount in prior_usage:
            ledger = ledger.add(card_id, rule_id, amount)
        return ledger

    def recommend(
        self,
        *,
        transaction: Transaction,
        preferences: Optional[Preferences] = None,
        ledger: Optional[UsageLedger] = None,
    ) -> RecommendationResult:
        """Rank every catalog card for the transaction.

        Inactive cards are passed through to the engine, which filters them
        itself. Raises reward_engine.errors.InvalidInput for invalid transactions.
        """
        cards = self.catalog.list_cards()
        result = recommend_cards(cards, transaction, preferences, ledger=ledger, config=self.config)
        logger.info(
            "Recommendation: %d card(s) evaluated, %d ranked, top=%s",
            result.total_cards_evaluated,
            result.eligible_cards_count,
            result.recommendations[0].card.id if result.has_recommendation else None,
        )
        return result

"""
Monthly usage ledger computation from a purchase log.
Deterministic and unit-testable.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from reward_engine.calculator import calculate_reward
from reward_engine.config import EngineConfig
from reward_engine.errors import InvalidInput
from reward_engine.models import CreditCard, Transaction, UsageLedger, to_decimal

logger = logging.getLogger(__name__)


@dataclass
class LoggedPurchase:
    """
    A purchase already made with a specific card (historical data).

    Fields:
    - id: unique identifier for the purchase
    - date: purchase date in YYYY-MM-DD format
    - amount: purchase amount (must be > 0)
    - card_id: which card was used
    - category: canonical spending category
    - merchant_id: merchant slug, if known
    - is_overseas: optional flag for overseas purchases
    """
    id: str
    date: str  # YYYY-MM-DD
    amount: Decimal
    card_id: str
    category: str
    merchant_id: Optional[str] = None
    is_overseas: bool = False

    def __post_init__(self):
        self.amount = to_decimal(self.amount)

    def to_transaction(self) -> Transaction:
        return Transaction(
            amount=self.amount,
            occurred_at=datetime.strptime(self.date, "%Y-%m-%d"),
            category=self.category,
            merchant_id=self.merchant_id,
            is_overseas=self.is_overseas,
        )


def month_key(date: str) -> str:
    """
    Extract the month key from a date string.

    Example:
        >>> month_key("2025-01-15")
        "2025-01"
    """
    return date[:7]  # Extract YYYY-MM from YYYY-MM-DD


def build_usage_ledger(
    history: List[LoggedPurchase],
    cards: List[CreditCard],
    target_yyyy_mm: str,
    config: Optional[EngineConfig] = None,
) -> UsageLedger:
    """
    Build the usage ledger for a given month from purchase history.

    Purchases in the target month are replayed in date order through the
    reward calculator, so each one sees the caps consumed by the ones before.

    Args:
        history: List of LoggedPurchase objects
        cards: Catalog cards (purchases on unknown cards are ignored)
        target_yyyy_mm: Target month in YYYY-MM format (e.g., "2025-01")
        config: Optional EngineConfig

    Returns:
        UsageLedger for the month

    Example:
        >>> ledger = build_usage_ledger(purchases, cards, "2025-01")
        >>> ledger.used("dining-card", "dining-5pct")
        Decimal('20')
    """
    cards_by_id = {card.id: card for card in cards}
    ledger = UsageLedger(period=target_yyyy_mm)

    # Filter purchases for the target month
    target_purchases = sorted(
        (p for p in history if month_key(p.date) == target_yyyy_mm),
        key=lambda p: (p.date, p.id),
    )

    for purchase in target_purchases:
        card = cards_by_id.get(purchase.card_id)
        if card is None:
            logger.warning("Purchase %s uses unknown card %s; ignored", purchase.id, purchase.card_id)
            continue
        try:
            calculation = calculate_reward(card, purchase.to_transaction(), ledger=ledger, config=config)
        except (InvalidInput, ValueError) as exc:
            logger.warning("Purchase %s could not be replayed: %s", purchase.id, exc)
            continue
        ledger = ledger.record(calculation)

    return ledger

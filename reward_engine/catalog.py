"""
Card catalog suppliers and catalog-preparation tooling.

The engine only needs something with `list_cards()`. JsonCardCatalog reads the
exported catalog file (`{"cards": [...]}`); keys may be camelCase, as the
export produces them, or snake_case.
"""

import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol

from reward_engine.errors import CatalogError
from reward_engine.models import CreditCard, RewardCap, RewardRule, RuleConditions
from reward_engine.normalize import (
    CANONICAL_CATEGORIES,
    FALLBACK_CATEGORY,
    WILDCARD_CATEGORY,
    normalize_merchant_id,
    normalize_rule_category,
)

logger = logging.getLogger(__name__)


class CardCatalog(Protocol):
    def list_cards(self) -> List[CreditCard]:
        ...


def _get(data: Dict[str, Any], snake: str, camel: Optional[str] = None, default: Any = None) -> Any:
    if snake in data:
        return data[snake]
    if camel and camel in data:
        return data[camel]
    return default


def _parse_date(value: Any) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def parse_conditions(data: Optional[Dict[str, Any]]) -> Optional[RuleConditions]:
    if not data:
        return None
    geographic = data.get("geographic") or {}
    return RuleConditions(
        payment_type=_get(data, "payment_type", "paymentType"),
        currency=data.get("currency"),
        excluded_currencies=_get(data, "excluded_currencies", "excludedCurrencies", []),
        days_of_week=_get(data, "days_of_week", "dayOfWeek", []),
        min_amount=_get(data, "min_amount", "minAmount"),
        max_amount=_get(data, "max_amount", "maxAmount"),
        excluded_regions=_get(geographic, "excluded_regions", "excludedRegions", []),
        online_exempt=bool(_get(geographic, "online_exempt", "onlineExempt", False)),
    )


def conditions_to_dict(conditions: Optional[RuleConditions]) -> Optional[Dict[str, Any]]:
    """Inverse of parse_conditions, in snake_case, for storing conditions as JSON."""
    if conditions is None:
        return None
    data: Dict[str, Any] = {}
    if conditions.payment_type:
        data["payment_type"] = conditions.payment_type
    if conditions.currency:
        data["currency"] = conditions.currency
    if conditions.excluded_currencies:
        data["excluded_currencies"] = sorted(conditions.excluded_currencies)
    if conditions.days_of_week:
        data["days_of_week"] = sorted(conditions.days_of_week)
    if conditions.min_amount is not None:
        data["min_amount"] = str(conditions.min_amount)
    if conditions.max_amount is not None:
        data["max_amount"] = str(conditions.max_amount)
    if conditions.excluded_regions or conditions.online_exempt:
        data["geographic"] = {
            "excluded_regions": sorted(conditions.excluded_regions),
            "online_exempt": conditions.online_exempt,
        }
    return data


def _parse_cap(data: Dict[str, Any]) -> Optional[RewardCap]:
    cap = data.get("cap")
    if isinstance(cap, dict):
        return RewardCap(amount=cap["amount"], period=cap.get("period", "monthly"))
    legacy = _get(data, "max_reward_cap", "maxRewardCap")
    if legacy is not None:
        return RewardCap(amount=legacy)
    return None


def parse_rule(data: Dict[str, Any]) -> RewardRule:
    priority = data.get("priority")
    return RewardRule(
        id=str(data["id"]),
        rate=_get(data, "rate", "rewardRate"),
        reward_unit=_get(data, "reward_unit", "rewardUnit", "cash"),
        categories=data.get("categories") or [],
        specific_merchants=_get(data, "specific_merchants", "specificMerchants", []) or [],
        excluded_merchants=_get(data, "excluded_merchants", "excludedMerchants", []) or [],
        excluded_categories=_get(data, "excluded_categories", "excludedCategories", []) or [],
        cap=_parse_cap(data),
        # Only integer priorities are explicit; anything else is ignored
        priority=priority if isinstance(priority, int) and not isinstance(priority, bool) else None,
        stackable=bool(data.get("stackable", False)),
        conditions=parse_conditions(data.get("conditions")),
        valid_from=_parse_date(_get(data, "valid_from", "validFrom")),
        valid_until=_parse_date(_get(data, "valid_until", "validUntil")),
        description=data.get("description", ""),
        is_promotional=bool(_get(data, "is_promotional", "isPromotional", False)),
    )


def parse_card(data: Dict[str, Any]) -> CreditCard:
    fee_schedule = dict(_get(data, "fee_schedule", "feeSchedule", {}) or {})
    fees = data.get("fees") or {}
    foreign_rate = _get(fees, "foreign_transaction_fee_rate", "foreignTransactionFeeRate")
    if foreign_rate is not None and "overseas" not in fee_schedule:
        fee_schedule["overseas"] = foreign_rate

    annual_fee = _get(data, "annual_fee", "annualFee")
    if annual_fee is None:
        annual_fee = _get(fees, "annual_fee", "annualFee")

    return CreditCard(
        id=str(data["id"]),
        name=data["name"],
        issuer=data.get("issuer", ""),
        rewards=tuple(parse_rule(rule) for rule in data.get("rewards", [])),
        is_active=bool(_get(data, "is_active", "isActive", True)),
        annual_fee=annual_fee,
        last_updated=_parse_datetime(_get(data, "last_updated", "lastUpdated")),
        fee_schedule=fee_schedule,
    )


class JsonCardCatalog:
    """Card catalog backed by a JSON export file."""

    def __init__(self, path):
        self.path = Path(path)

    def list_cards(self) -> List[CreditCard]:
        if not self.path.exists():
            raise CatalogError("Catalog file not found.", {"path": str(self.path)})
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                payload = json.load(f)
        except UnicodeDecodeError as exc:
            raise CatalogError(
                "Catalog file is not valid UTF-8.", {"path": str(self.path), "error": str(exc)}
            ) from exc
        except json.JSONDecodeError as exc:
            raise CatalogError(
                "Catalog file is not valid JSON.", {"path": str(self.path), "error": str(exc)}
            ) from exc

        raw_cards = payload.get("cards", []) if isinstance(payload, dict) else payload
        try:
            cards = [parse_card(item) for item in raw_cards]
        except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
            raise CatalogError(
                "Catalog file contains an invalid card.", {"path": str(self.path), "error": str(exc)}
            ) from exc

        logger.info("Loaded %d card(s) from %s", len(cards), self.path)
        return cards


def category_merchant_index(cards: Iterable[CreditCard]) -> Dict[str, List[str]]:
    """
    Map each canonical category to the merchant slugs that card rules single out.

    Merchants on wildcard-only rules are listed under 'others'. Rule categories
    outside the canonical set are ignored.
    """
    index: Dict[str, set] = {category: set() for category in CANONICAL_CATEGORIES}
    for card in cards:
        for rule in card.rewards:
            if not rule.specific_merchants:
                continue
            merchants = {normalize_merchant_id(m) for m in rule.specific_merchants} - {""}
            canonical = {normalize_rule_category(c) for c in rule.categories} - {None}
            categories = {
                FALLBACK_CATEGORY if c == WILDCARD_CATEGORY else c for c in canonical
            } or {FALLBACK_CATEGORY}
            for category in categories:
                index[category].update(merchants)
    return {category: sorted(merchants) for category, merchants in index.items()}

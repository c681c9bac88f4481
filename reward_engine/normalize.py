"""
Category and merchant normalization.

Every place that compares merchant identity (rule authoring, transaction input,
catalog tooling) must go through normalize_merchant_id. Identifiers are then
compared by exact string equality only.
"""

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from reward_engine.models import Transaction

WILDCARD_CATEGORY = "all"
FALLBACK_CATEGORY = "others"

CANONICAL_CATEGORIES = (
    "groceries",
    "dining",
    "online",
    "travel",
    "transport",
    "overseas",
    "utilities",
    "financial",
    "government",
    "digital-wallet",
    "others",
)

# Raw category string -> canonical category
CATEGORY_MAPPING = {
    "dining": "dining",
    "restaurant": "dining",
    "food": "dining",
    "groceries": "groceries",
    "grocery": "groceries",
    "supermarket": "groceries",
    "online": "online",
    "online-shopping": "online",
    "ecommerce": "online",
    "travel": "travel",
    "hotel": "travel",
    "transport": "transport",
    "fuel": "transport",
    "overseas": "overseas",
    "foreign": "overseas",
    "utilities": "utilities",
    "bills": "utilities",
    "insurance": "financial",
    "financial": "financial",
    "government": "government",
    "tax": "government",
    "digital-wallet": "digital-wallet",
    "ewallet": "digital-wallet",
    "retail": "others",
    "entertainment": "others",
    "others": "others",
}

MERCHANT_DISPLAY_NAMES = {
    "mcdonalds": "McDonald's",
    "wellcome": "Wellcome",
    "parknshop": "ParknShop",
    "sushiro": "Sushiro",
    "cathay-pacific": "Cathay Pacific",
    "mtr": "MTR",
    "7-eleven": "7-Eleven",
    "759-store": "759 Store",
    "circle-k": "Circle K",
    "hktvmall": "HKTVmall",
    "ikea": "IKEA",
    "muji": "MUJI",
    "uniqlo": "UNIQLO",
    "clp": "CLP",
    "hk-electric": "HK Electric",
    "payme": "PayMe",
    "alipay-hk": "AlipayHK",
    "wechat-pay": "WeChat Pay",
    "aia": "AIA",
}

_WHITESPACE = re.compile(r"\s+")
_NON_SLUG = re.compile(r"[^a-z0-9-]")


def normalize_category(raw: Optional[str]) -> str:
    """
    Map a raw category string onto the canonical taxonomy.

    Example:
        >>> normalize_category("Restaurant")
        'dining'
        >>> normalize_category("space travel")
        'others'
    """
    if not raw:
        return FALLBACK_CATEGORY
    key = str(raw).strip().lower()
    return CATEGORY_MAPPING.get(key, FALLBACK_CATEGORY)


def normalize_rule_category(raw: Optional[str]) -> Optional[str]:
    """
    Canonical identifier of a category named by a card rule.

    Rules must use canonical categories (or the 'all' wildcard); only case and
    surrounding whitespace are forgiven. Anything else returns None.

    Example:
        >>> normalize_rule_category(" Dining ")
        'dining'
        >>> normalize_rule_category("Restaurant") is None
        True
    """
    if not raw:
        return None
    key = str(raw).strip().lower()
    if key == WILDCARD_CATEGORY or key in CANONICAL_CATEGORIES:
        return key
    return None


def normalize_merchant_id(raw: Optional[str]) -> str:
    """
    Turn a free-form merchant name into a merchant slug.

    Example:
        >>> normalize_merchant_id("  Circle K ")
        'circle-k'
    """
    if not raw:
        return ""
    slug = _WHITESPACE.sub("-", str(raw).strip().lower())
    return _NON_SLUG.sub("", slug)


def merchant_display_name(merchant_id: str) -> str:
    """Human-readable merchant name for catalog tooling and CLI output."""
    slug = normalize_merchant_id(merchant_id)
    if slug in MERCHANT_DISPLAY_NAMES:
        return MERCHANT_DISPLAY_NAMES[slug]
    return " ".join(word.capitalize() for word in re.split(r"[-_]", slug) if word)


def build_transaction(
    amount: Any,
    category: Optional[str],
    merchant: Optional[str] = None,
    *,
    currency: str = "HKD",
    is_overseas: bool = False,
    occurred_at: Optional[datetime] = None,
    payment_type: Optional[str] = None,
    location: Optional[str] = None,
) -> Transaction:
    """
    Build a normalized Transaction from raw user input.

    A missing category is passed through as None so that the engine can
    reject it; anything else unrecognised becomes 'others'.
    """
    try:
        amount_value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except InvalidOperation:
        amount_value = amount

    merchant_id = normalize_merchant_id(merchant) or None
    return Transaction(
        amount=amount_value,
        category=normalize_category(category) if category and str(category).strip() else None,
        occurred_at=occurred_at,
        currency=(currency or "HKD").upper(),
        merchant_id=merchant_id,
        is_overseas=bool(is_overseas),
        payment_type=payment_type.lower() if payment_type else None,
        location=location,
    )

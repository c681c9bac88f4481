"""
Command-line interface for the card reward engine.
Purchases are logged to a CSV file so that monthly caps can be tracked.
"""

import argparse
import csv
import logging
import sys
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import List, Optional

from reward_engine.calculator import format_effective_rate, format_reward
from reward_engine.catalog import JsonCardCatalog, category_merchant_index
from reward_engine.config import EngineConfig
from reward_engine.errors import CatalogError, InvalidInput
from reward_engine.models import Preferences, RewardUnit
from reward_engine.normalize import build_transaction, merchant_display_name, normalize_category, normalize_merchant_id
from reward_engine.recommender import recommend_cards
from reward_engine.state import LoggedPurchase, build_usage_ledger, month_key


# Default file paths
CSV_PATH = Path("data/purchases.csv")
CATALOG_PATH = Path("data/cards.json")
CSV_HEADERS = ["id", "date", "amount", "card_id", "category", "merchant_id", "is_overseas"]


def fail(message: str):
    print(f"Error: {message}")
    sys.exit(1)


def ensure_csv_exists(csv_path: Path):
    """Create the CSV file with headers if it doesn't exist."""
    if not csv_path.exists():
        csv_path.parent.mkdir(parents=True, exist_ok=True)
        with open(csv_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(CSV_HEADERS)


def load_purchases(csv_path: Path) -> List[LoggedPurchase]:
    """
    Load all logged purchases from the CSV file.

    Returns:
        List of LoggedPurchase objects
    """
    purchases = []

    if not csv_path.exists():
        return purchases

    with open(csv_path, "r", newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        for row in reader:
            purchases.append(
                LoggedPurchase(
                    id=row["id"],
                    date=row["date"],
                    amount=Decimal(row["amount"]),
                    card_id=row["card_id"],
                    category=row["category"],
                    merchant_id=row.get("merchant_id") or None,
                    is_overseas=(row.get("is_overseas") or "").lower() == "true",
                )
            )

    return purchases


def generate_purchase_id(csv_path: Path) -> str:
    """
    Generate a unique purchase ID based on timestamp.

    Returns:
        Purchase ID string (e.g., "txn_20250115_123045_001")
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    existing_ids = {p.id for p in load_purchases(csv_path)}

    counter = 1
    while True:
        purchase_id = f"txn_{timestamp}_{counter:03d}"
        if purchase_id not in existing_ids:
            return purchase_id
        counter += 1


def load_catalog(catalog_path: Path):
    try:
        return JsonCardCatalog(catalog_path).list_cards()
    except CatalogError as exc:
        fail(f"{exc.message} ({exc.details.get('path')})")


def parse_amount(raw: str) -> Decimal:
    try:
        amount = Decimal(raw)
    except InvalidOperation:
        fail(f"Invalid amount '{raw}'.")
    if not amount.is_finite():
        fail(f"Amount must be a finite number. Got: {raw}")
    if amount <= 0:
        fail(f"Amount must be greater than 0. Got: {raw}")
    return amount


def parse_date(raw: str) -> datetime:
    try:
        return datetime.strptime(raw, "%Y-%m-%d")
    except ValueError:
        fail(f"Invalid date format '{raw}'. Expected YYYY-MM-DD.")


def cmd_add(args):
    """
    Log a purchase made with one of the catalog's cards.

    Args:
        args: Parsed command-line arguments with fields:
            - date: YYYY-MM-DD
            - amount: decimal string
            - card: card id from the catalog
            - category: raw category (normalized before saving)
            - merchant: optional merchant name (slugged before saving)
            - overseas: flag
    """
    cards = load_catalog(args.catalog)
    valid_cards = sorted(card.id for card in cards)
    if args.card not in valid_cards:
        fail(f"Invalid card '{args.card}'. Must be one of: {', '.join(valid_cards)}")

    amount = parse_amount(args.amount)
    parse_date(args.date)

    ensure_csv_exists(args.log)
    purchase_id = generate_purchase_id(args.log)
    category = normalize_category(args.category)
    merchant_id = normalize_merchant_id(args.merchant)

    row = [purchase_id, args.date, str(amount), args.card, category, merchant_id, "true" if args.overseas else "false"]
    with open(args.log, "a", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(row)

    print(f"Purchase added: {purchase_id}")
    print(f"  Date: {args.date}")
    print(f"  Amount: {amount:.2f}")
    print(f"  Card: {args.card}")
    print(f"  Category: {category}")
    if merchant_id:
        print(f"  Merchant: {merchant_display_name(merchant_id)}")
    if args.overseas:
        print("  Overseas: yes")


def cmd_show(args):
    """
    Show reward usage against caps for a given month.

    Args:
        args: Parsed command-line arguments with fields:
            - month: YYYY-MM
    """
    try:
        datetime.strptime(args.month, "%Y-%m")
    except ValueError:
        fail(f"Invalid month format '{args.month}'. Expected YYYY-MM.")

    purchases = load_purchases(args.log)
    if not purchases:
        print("No purchases logged.")
        return

    cards = load_catalog(args.catalog)
    ledger = build_usage_ledger(purchases, cards, args.month, EngineConfig.from_env())

    print(f"\n=== Reward Usage for {args.month} ===\n")
    if not ledger.usage:
        print("  (No rewards earned)")
        print()
        return

    rules = {(card.id, rule.id): rule for card in cards for rule in card.rewards}
    for (card_id, rule_id), used in sorted(ledger.usage.items()):
        rule = rules.get((card_id, rule_id))
        line = f"  {card_id} / {rule_id}: {used:.2f} {rule.reward_unit if rule else ''}".rstrip()
        if rule is not None and rule.cap is not None:
            remaining = max(Decimal("0"), rule.cap.amount - used)
            line += f" (cap {rule.cap.amount}, remaining {remaining:.2f})"
        print(line)
    print()


def cmd_recommend(args):
    """
    Get a ranked card recommendation for an upcoming purchase.

    Args:
        args: Parsed command-line arguments with fields:
            - date: YYYY-MM-DD
            - amount: decimal string
            - category: raw category
            - merchant: optional merchant name
            - currency, overseas, payment_type: transaction details
            - pref: preferred reward types (cash | miles | points), repeatable
            - top: number of cards to show
    """
    occurred_at = parse_date(args.date)
    amount = parse_amount(args.amount)

    valid_prefs = [unit.value for unit in RewardUnit]
    for pref in args.pref:
        if pref not in valid_prefs:
            fail(f"Invalid preference '{pref}'. Must be one of: {', '.join(valid_prefs)}")

    cards = load_catalog(args.catalog)
    # Ledger replay and ranking share one config
    config = EngineConfig.from_env()
    ledger = build_usage_ledger(load_purchases(args.log), cards, month_key(args.date), config)

    transaction = build_transaction(
        amount,
        args.category,
        args.merchant,
        currency=args.currency,
        is_overseas=args.overseas,
        occurred_at=occurred_at,
        payment_type=args.payment_type,
    )

    try:
        result = recommend_cards(
            cards,
            transaction,
            Preferences(preferred_reward_types=args.pref),
            ledger=ledger,
            config=config,
        )
    except InvalidInput as exc:
        fail(exc.message)

    print("\n=== Card Recommendation ===\n")
    merchant = f" at {merchant_display_name(transaction.merchant_id)}" if transaction.merchant_id else ""
    print(f"Purchase: {transaction.currency} {transaction.amount:.2f} {transaction.category}{merchant} on {args.date}")
    if args.pref:
        print(f"Preference: {', '.join(args.pref)}")
    print(f"Cards evaluated: {result.total_cards_evaluated} ({result.eligible_cards_count} eligible)")

    if not result.has_recommendation:
        print("\nNo card can be recommended for this purchase.")
        return

    print(f"\nRecommended Card: {result.recommendations[0].card.name}")
    print("\n--- Ranked Options ---\n")

    for rec in result.recommendations[: args.top]:
        calc = rec.calculation
        print(f"{rec.rank}. {rec.card.name} ({rec.card.issuer}) - {format_reward(calc)} "
              f"@ {format_effective_rate(calc)}, net value {rec.net_value:.2f}")
        if calc.applied_rules:
            print(f"   • Rules: {', '.join(calc.applied_rules)}")
        if calc.capped_out:
            print("   • Monthly cap reached")
        if calc.fees > 0:
            print(f"   • Fees: {calc.fees:.2f}")
        for warning in calc.warnings:
            print(f"   • Warning: {warning}")
    print()


def cmd_merchants(args):
    """List the merchants singled out by card rules, grouped by category."""
    cards = load_catalog(args.catalog)
    index = category_merchant_index(cards)

    print("\n=== Merchants by Category ===\n")
    for category, merchants in index.items():
        if not merchants:
            continue
        print(f"{category}:")
        for merchant_id in merchants:
            print(f"  {merchant_id} ({merchant_display_name(merchant_id)})")
    print()


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Card Reward Engine CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("--catalog", type=Path, default=CATALOG_PATH, help="Card catalog JSON file")
    parser.add_argument("--log", type=Path, default=CSV_PATH, help="Purchase log CSV file")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Add command
    parser_add = subparsers.add_parser("add", help="Log a purchase")
    parser_add.add_argument("--date", required=True, help="Purchase date (YYYY-MM-DD)")
    parser_add.add_argument("--amount", required=True, help="Purchase amount")
    parser_add.add_argument("--card", required=True, help="Card ID from the catalog")
    parser_add.add_argument("--category", required=True, help="Spending category")
    parser_add.add_argument("--merchant", default=None, help="Merchant name (optional)")
    parser_add.add_argument("--overseas", action="store_true", help="Overseas purchase")

    # Show command
    parser_show = subparsers.add_parser("show", help="Show monthly reward usage")
    parser_show.add_argument("--month", required=True, help="Target month (YYYY-MM)")

    # Recommend command
    parser_recommend = subparsers.add_parser("recommend", help="Get card recommendation")
    parser_recommend.add_argument("--date", default=datetime.now().strftime("%Y-%m-%d"), help="Purchase date (YYYY-MM-DD)")
    parser_recommend.add_argument("--amount", required=True, help="Purchase amount")
    parser_recommend.add_argument("--category", required=True, help="Spending category")
    parser_recommend.add_argument("--merchant", default=None, help="Merchant name (optional)")
    parser_recommend.add_argument("--currency", default="HKD", help="Currency code")
    parser_recommend.add_argument("--overseas", action="store_true", help="Overseas purchase")
    parser_recommend.add_argument("--payment-type", dest="payment_type", default=None,
                                  help="Payment type (online | offline | contactless | recurring)")
    parser_recommend.add_argument("--pref", action="append", default=[], help="Preferred reward type (repeatable)")
    parser_recommend.add_argument("--top", type=int, default=5, help="Number of cards to show")

    # Merchants command
    subparsers.add_parser("merchants", help="List merchants singled out by card rules")

    # Parse arguments
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Execute command
    if args.command == "add":
        cmd_add(args)
    elif args.command == "show":
        cmd_show(args)
    elif args.command == "recommend":
        cmd_recommend(args)
    elif args.command == "merchants":
        cmd_merchants(args)


if __name__ == "__main__":
    main()

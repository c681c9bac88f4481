import logging
from sqlalchemy.orm import Session, selectinload

from app.models.card_catalogue import CardCatalogue
from app.models.card_fee import CardFee
from app.models.card_reward_rule import CardRewardRule

from reward_engine.catalog import conditions_to_dict, parse_conditions
from reward_engine.models import CreditCard, RewardCap, RewardRule

logger = logging.getLogger(__name__)


class CatalogService:
    """Read-only card catalog backed by the database."""

    def __init__(self, db: Session):
        self.db = db

    def get_catalog(self) -> list[CardCatalogue]:
        """Retrieve all cards (active and inactive) from the database."""
        return (
            self.db.query(CardCatalogue)
            .options(selectinload(CardCatalogue.reward_rules), selectinload(CardCatalogue.fees))
            .order_by(CardCatalogue.card_id)
            .all()
        )

    def list_cards(self) -> list[CreditCard]:
        """Card catalog contract: every card as an engine CreditCard."""
        cards = [self.to_credit_card(row) for row in self.get_catalog()]
        logger.debug("Catalog supplied %d card(s)", len(cards))
        return cards

    def is_empty(self) -> bool:
        return self.db.query(CardCatalogue.card_id).first() is None

    def import_cards(self, cards: list[CreditCard]) -> int:
        """Store cards (e.g. from a JSON export), replacing rows with the same card_id."""
        for card in cards:
            existing = self.db.get(CardCatalogue, card.id)
            if existing is not None:
                self.db.delete(existing)
                self.db.flush()
            self.db.add(self.to_row(card))
        self.db.commit()
        logger.info("Imported %d card(s) into the catalog", len(cards))
        return len(cards)

    @staticmethod
    def to_row(card: CreditCard) -> CardCatalogue:
        row = CardCatalogue(
            card_id=card.id,
            card_name=card.name,
            issuer=card.issuer,
            is_active=card.is_active,
            annual_fee=card.annual_fee,
            last_updated=card.last_updated,
        )
        for position, rule in enumerate(card.rewards):
            row.reward_rules.append(
                CardRewardRule(
                    rule_id=rule.id,
                    position=position,
                    categories=sorted(rule.categories),
                    specific_merchants=sorted(rule.specific_merchants),
                    excluded_merchants=sorted(rule.excluded_merchants),
                    excluded_categories=sorted(rule.excluded_categories),
                    rate=rule.rate,
                    reward_unit=rule.reward_unit,
                    cap_amount=rule.cap.amount if rule.cap else None,
                    cap_period=rule.cap.period if rule.cap else None,
                    priority=rule.priority,
                    stackable=rule.stackable,
                    conditions=conditions_to_dict(rule.conditions),
                    valid_from=rule.valid_from,
                    valid_until=rule.valid_until,
                    description=rule.description,
                    is_promotional=rule.is_promotional,
                )
            )
        for fee_key, fee_rate in sorted(card.fee_schedule.items()):
            row.fees.append(CardFee(fee_key=fee_key, fee_rate=fee_rate))
        return row

    @staticmethod
    def to_reward_rule(row: CardRewardRule) -> RewardRule:
        cap = None
        if row.cap_amount is not None:
            cap = RewardCap(amount=row.cap_amount, period=row.cap_period or "monthly")
        return RewardRule(
            id=row.rule_id,
            rate=row.rate,
            reward_unit=row.reward_unit,
            categories=row.categories or [],
            specific_merchants=row.specific_merchants or [],
            excluded_merchants=row.excluded_merchants or [],
            excluded_categories=row.excluded_categories or [],
            cap=cap,
            priority=row.priority,
            stackable=bool(row.stackable),
            conditions=parse_conditions(row.conditions),
            valid_from=row.valid_from,
            valid_until=row.valid_until,
            description=row.description or "",
            is_promotional=bool(row.is_promotional),
        )

    @classmethod
    def to_credit_card(cls, row: CardCatalogue) -> CreditCard:
        rules = sorted(row.reward_rules, key=lambda r: (r.position, r.card_rule_pk or 0))
        return CreditCard(
            id=row.card_id,
            name=row.card_name,
            issuer=row.issuer,
            rewards=tuple(cls.to_reward_rule(r) for r in rules),
            is_active=bool(row.is_active),
            annual_fee=row.annual_fee,
            last_updated=row.last_updated,
            fee_schedule={fee.fee_key: fee.fee_rate for fee in row.fees},
        )

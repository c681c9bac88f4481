from sqlalchemy import (
    Column,
    Integer,
    String,
    Numeric,
    Boolean,
    Date,
    JSON,
    Enum as SAEnum,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from app.db.db import Base
from pydantic import BaseModel, ConfigDict, field_validator
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from reward_engine.models import CapPeriod


class CardRewardRule(Base):
    __tablename__ = "card_reward_rule"

    card_rule_pk = Column(Integer, primary_key=True, index=True)
    card_id = Column(String(64), ForeignKey("card_catalogue.card_id", ondelete="CASCADE"), nullable=False)
    rule_id = Column(String(64), nullable=False)
    # Declaration order on the card; breaks final ties between rules
    position = Column(Integer, nullable=False, default=0)
    categories = Column(JSON, nullable=False, default=list)
    specific_merchants = Column(JSON, nullable=False, default=list)
    excluded_merchants = Column(JSON, nullable=False, default=list)
    excluded_categories = Column(JSON, nullable=False, default=list)
    rate = Column(Numeric(10, 4), nullable=False)
    reward_unit = Column(String(32), nullable=False)
    cap_amount = Column(Numeric(12, 2), nullable=True)
    cap_period = Column(SAEnum(CapPeriod), nullable=True)
    priority = Column(Integer, nullable=True)
    stackable = Column(Boolean, nullable=False, default=False)
    conditions = Column(JSON, nullable=True)
    valid_from = Column(Date, nullable=True)
    valid_until = Column(Date, nullable=True)
    description = Column(String(500), nullable=False, default="")
    is_promotional = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("card_id", "rule_id", name="uq_card_reward_rule_per_card"),
        CheckConstraint("rate >= 0", name="ck_rule_rate_non_negative"),
        CheckConstraint("cap_amount IS NULL OR cap_amount >= 0", name="ck_rule_cap_non_negative"),
    )

    card_catalogue = relationship("CardCatalogue", back_populates="reward_rules")


class CardRewardRuleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rule_id: str
    position: int
    categories: list[str] = []
    specific_merchants: list[str] = []
    excluded_merchants: list[str] = []
    excluded_categories: list[str] = []
    rate: Decimal
    reward_unit: str
    cap_amount: Optional[Decimal] = None
    cap_period: Optional[CapPeriod] = None
    priority: Optional[int] = None
    stackable: bool = False
    conditions: Optional[dict[str, Any]] = None
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None
    description: str = ""
    is_promotional: bool = False

    @field_validator("rate")
    @classmethod
    def rate_non_negative(cls, v: Decimal):
        if v < 0:
            raise ValueError("rate must be non-negative")
        return v

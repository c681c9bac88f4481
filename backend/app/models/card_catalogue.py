from sqlalchemy import Column, String, Numeric, Boolean, DateTime, CheckConstraint
from sqlalchemy.orm import relationship
from app.db.db import Base
from pydantic import BaseModel, ConfigDict, field_validator
from datetime import datetime
from decimal import Decimal

from app.models.card_reward_rule import CardRewardRuleResponse
from app.models.card_fee import CardFeeResponse


# SQLAlchemy ORM Model
class CardCatalogue(Base):
    __tablename__ = "card_catalogue"

    card_id = Column(String(64), primary_key=True, index=True, unique=True)
    card_name = Column(String(255), nullable=False)
    issuer = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    annual_fee = Column(Numeric(10, 2), nullable=True)
    last_updated = Column(DateTime, nullable=True)

    # Table-level constraints
    __table_args__ = (
        CheckConstraint('annual_fee IS NULL OR annual_fee >= 0', name='ck_annual_fee_non_negative'),
    )

    reward_rules = relationship(
        "CardRewardRule",
        back_populates="card_catalogue",
        cascade="all, delete-orphan",
        order_by="CardRewardRule.position",
    )
    fees = relationship(
        "CardFee",
        back_populates="card_catalogue",
        cascade="all, delete-orphan",
    )


# Pydantic Models for Response
class CardCatalogueResponse(BaseModel):
    """Schema for API responses"""
    model_config = ConfigDict(from_attributes=True)

    card_id: str
    card_name: str
    issuer: str
    is_active: bool
    annual_fee: Decimal | None = None
    last_updated: datetime | None = None
    reward_rules: list[CardRewardRuleResponse] = []
    fees: list[CardFeeResponse] = []

    @field_validator('card_name')
    @classmethod
    def card_name_not_empty(cls, v):
        if not v or not v.strip():
            raise ValueError('Card name cannot be empty')
        return v.strip()

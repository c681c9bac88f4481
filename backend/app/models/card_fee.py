from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from app.db.db import Base
from pydantic import BaseModel, ConfigDict
from decimal import Decimal


class CardFee(Base):
    """Per-transaction fee rate, keyed by canonical category or 'overseas'."""
    __tablename__ = "card_fee"

    card_fee_id = Column(Integer, primary_key=True, index=True)
    card_id = Column(String(64), ForeignKey("card_catalogue.card_id", ondelete="CASCADE"), nullable=False)
    fee_key = Column(String(64), nullable=False)
    fee_rate = Column(Numeric(8, 5), nullable=False)

    __table_args__ = (
        UniqueConstraint("card_id", "fee_key", name="uq_card_fee_key_per_card"),
        CheckConstraint("fee_rate >= 0", name="ck_fee_rate_non_negative"),
    )

    card_catalogue = relationship("CardCatalogue", back_populates="fees")


class CardFeeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    fee_key: str
    fee_rate: Decimal

# app/models/referral_bonus.py
from sqlmodel import SQLModel, Field
from typing import Optional
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4
from datetime import datetime


class BonusStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


class ReferralBonus(SQLModel, table=True):
    __tablename__ = "referral_bonus"
    id: Optional[UUID] = Field(default_factory=uuid4, primary_key=True, unique=True)
    driver_id: str = Field(foreign_key="driver.id", index=True)     # quién recibe el bono (padre)
    referred_driver_id: Optional[str] = Field(default=None,         # indicado que lo generó (hijo)
                                              foreign_key="driver.id")
    amount: Decimal = Field(default=0, max_digits=10, decimal_places=2)
    description: Optional[str] = None
    status: BonusStatus = Field(default=BonusStatus.PENDING, index=True)
    paid_week_id: Optional[str] = None
    payment_id: Optional[str] = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        nullable=False,
        sa_column_kwargs={"onupdate": datetime.utcnow}
    )


class ReferralBonusCreate(SQLModel):
    driver_id: str
    referred_driver_id: Optional[str] = None
    amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    description: Optional[str] = None

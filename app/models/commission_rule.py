from sqlmodel import SQLModel, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4
from pydantic import BaseModel


class CommissionType(str, Enum):
    BASE = "base"                # sobre los ganhos propios
    RECRUITMENT = "recruitment"  # sobre los ganhos de los indicados


class CommissionRuleBase(SQLModel):
    type: CommissionType
    level: int = Field(ge=1, le=3)  # 1=Bronze, 2=Silver, 3=Gold
    percentage: Decimal = Field(default=0, max_digits=7, decimal_places=4)
    fixed_value: Optional[Decimal] = Field(
        default=None, max_digits=10, decimal_places=2)
    min_earnings: Decimal = Field(default=0, max_digits=12, decimal_places=2)
    min_recruitments: int = Field(default=0, ge=0)
    description: str = ""


class CommissionRule(CommissionRuleBase, table=True):
    __tablename__ = "commission_rule"
    id: Optional[UUID] = Field(
        default_factory=uuid4, primary_key=True, unique=True)
    active: bool = Field(default=True, index=True)
    supersedes_id: Optional[UUID] = Field(
        default=None, foreign_key="commission_rule.id")
    created_at: datetime = Field(
        default_factory=datetime.utcnow, nullable=False)
    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        nullable=False,
        sa_column_kwargs={"onupdate": datetime.utcnow}
    )


class CommissionRuleCreate(CommissionRuleBase):
    pass


class CommissionRuleUpdate(SQLModel):
    percentage: Optional[Decimal] = None
    fixed_value: Optional[Decimal] = None
    min_earnings: Optional[Decimal] = None
    min_recruitments: Optional[int] = None
    description: Optional[str] = None


class CommissionRuleToggle(SQLModel):
    active: bool


class CommissionLine(BaseModel):
    rule_id: Optional[str]
    type: CommissionType
    level: int
    depth: int = 0
    referred_driver_id: Optional[str] = None
    base: Decimal = Decimal("0")
    amount: Decimal = Decimal("0")
    eligible: bool = True
    reason: Optional[str] = None


class CommissionResult(BaseModel):
    driver_id: str
    week_id: str
    base_commission: Decimal = Decimal("0")
    recruitment_commission: Decimal = Decimal("0")
    breakdown: List[CommissionLine] = []

    @property
    def total(self) -> Decimal:
        return self.base_commission + self.recruitment_commission

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4
from pydantic import BaseModel


class FinancingType(str, Enum):
    LOAN = "loan"
    DISCOUNT = "discount"


class FinancingStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class FinancingBase(SQLModel):
    driver_id: str = Field(foreign_key="driver.id", index=True)
    type: FinancingType = Field(default=FinancingType.LOAN)
    amount: Decimal = Field(default=0, max_digits=12, decimal_places=2)
    weeks: Optional[int] = Field(default=None, ge=1)  # None = sin límite
    weekly_interest: Decimal = Field(
        default=0, max_digits=7, decimal_places=4)  # porcentaje semanal
    start_date: date
    notes: Optional[str] = None


class Financing(FinancingBase, table=True):
    id: Optional[UUID] = Field(
        default_factory=uuid4, primary_key=True, unique=True)
    status: FinancingStatus = Field(default=FinancingStatus.ACTIVE)
    remaining_weeks: Optional[int] = None
    # ids de DriverPayment que ya descontaron una parcela
    processed_records: List[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False))
    end_date: Optional[datetime] = None
    created_at: datetime = Field(
        default_factory=datetime.utcnow, nullable=False)
    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        nullable=False,
        sa_column_kwargs={"onupdate": datetime.utcnow}
    )

    @property
    def is_unlimited(self) -> bool:
        return self.weeks is None

    def weekly_installment(self) -> Decimal:
        """Parcela de capital por semana (0 para financiamientos sin plazo)."""
        if not self.weeks:
            return Decimal("0")
        return Decimal(str(self.amount)) / Decimal(self.weeks)


class FinancingCreate(FinancingBase):
    pass


class FinancingApplication(BaseModel):
    """Resultado de aplicar un pago a un financiamiento."""
    financing_id: str
    installment_paid: int
    remaining_installments: Optional[int]
    completed: bool
    already_processed: bool = False

from sqlmodel import SQLModel, Field
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pydantic import BaseModel

from .driver import AdminFeeMode, DriverType
from .financing import FinancingType
from .commission_rule import CommissionLine


class WeeklyPaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


def record_id_for(driver_id: str, week_id: str) -> str:
    return f"{driver_id}_{week_id}"


class DriverWeeklyRecord(SQLModel, table=True):
    """
    Estado persistido de la proyección semanal. Los montos no se guardan aquí:
    se recalculan en cada lectura hasta que exista un DriverPayment.
    """
    __tablename__ = "driver_weekly_record"
    id: str = Field(primary_key=True)  # driverId_weekId
    driver_id: str = Field(foreign_key="driver.id", index=True)
    week_id: str = Field(index=True)
    payment_status: WeeklyPaymentStatus = Field(
        default=WeeklyPaymentStatus.PENDING)
    payment_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: datetime = Field(
        default_factory=datetime.utcnow, nullable=False)
    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        nullable=False,
        sa_column_kwargs={"onupdate": datetime.utcnow}
    )


class FinancingCharge(BaseModel):
    financing_id: str
    type: FinancingType
    installment: Decimal
    interest_percent: Decimal
    interest_amount: Decimal
    remaining_weeks: Optional[int] = None


class WeeklyStatement(BaseModel):
    """Desglose financiero semanal de un motorista (proyección)."""
    record_id: str
    driver_id: str
    driver_name: Optional[str] = None
    driver_type: DriverType
    week_id: str
    week_start: date
    week_end: date

    ride_a_total: Decimal = Decimal("0")
    ride_b_total: Decimal = Decimal("0")
    total_trips: int = 0
    fuel_total: Decimal = Decimal("0")
    toll_total: Decimal = Decimal("0")

    ganhos_total: Decimal = Decimal("0")
    iva_valor: Decimal = Decimal("0")
    ganhos_menos_iva: Decimal = Decimal("0")

    admin_fee_mode: AdminFeeMode = AdminFeeMode.PERCENT
    admin_fee_rate: Decimal = Decimal("0")
    admin_fee_exempt: bool = False
    despesas_base: Decimal = Decimal("0")
    financing_interest: Decimal = Decimal("0")
    despesas_adm: Decimal = Decimal("0")

    aluguel: Decimal = Decimal("0")
    financing_total_cost: Decimal = Decimal("0")
    financing: List[FinancingCharge] = []

    commission_amount: Decimal = Decimal("0")
    commission_breakdown: List[CommissionLine] = []

    total_despesas: Decimal = Decimal("0")
    repasse: Decimal = Decimal("0")

    bonus_amount: Decimal = Decimal("0")
    bonus_ids: List[str] = []

    payment_status: WeeklyPaymentStatus = WeeklyPaymentStatus.PENDING
    payment_id: Optional[str] = None
    frozen: bool = False

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple
from pydantic import BaseModel, ConfigDict

from .driver import AdminFeeMode, DriverType


class EligibilityPolicy(str, Enum):
    START_DATE_TO_WEEK_END = "startDateToWeekEnd"
    START_DATE_TO_WEEK_START = "startDateToWeekStart"


class FinancingOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    dynamic_calculation: bool = True
    eligibility_policy: EligibilityPolicy = EligibilityPolicy.START_DATE_TO_WEEK_END
    payment_decrement_dynamic: bool = True


class FinancialConfig(BaseModel):
    """Configuración financiera inmutable que se pasa explícitamente a los cálculos."""
    model_config = ConfigDict(frozen=True)

    vat_rate: Decimal = Decimal("0.06")
    admin_fee_mode: AdminFeeMode = AdminFeeMode.PERCENT
    admin_fee_percent: Decimal = Decimal("7")
    admin_fee_fixed_default: Decimal = Decimal("25")
    financing: FinancingOptions = FinancingOptions()
    commission_max_depth: int = 3
    commission_driver_types: Tuple[DriverType, ...] = (DriverType.AFFILIATE,)


class FinancialSettingsBase(SQLModel):
    admin_fee_mode: AdminFeeMode = Field(default=AdminFeeMode.PERCENT)
    admin_fee_percent: Decimal = Field(default=7, max_digits=7, decimal_places=4)
    admin_fee_fixed_default: Decimal = Field(default=25, max_digits=10, decimal_places=2)
    financing_dynamic_calculation: bool = True
    financing_eligibility_policy: EligibilityPolicy = Field(
        default=EligibilityPolicy.START_DATE_TO_WEEK_END)
    financing_payment_decrement_dynamic: bool = True
    commission_max_depth: int = Field(default=3, ge=1, le=3)
    commission_driver_types: List[str] = Field(
        default_factory=lambda: [DriverType.AFFILIATE.value], sa_column=Column(JSON, nullable=False))


class FinancialSettings(FinancialSettingsBase, table=True):
    __tablename__ = "financial_settings"
    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(
        default_factory=datetime.utcnow, nullable=False)
    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        nullable=False,
        sa_column_kwargs={"onupdate": datetime.utcnow}
    )

    def to_config(self, vat_rate: Decimal) -> FinancialConfig:
        return FinancialConfig(
            vat_rate=vat_rate,
            admin_fee_mode=self.admin_fee_mode,
            admin_fee_percent=Decimal(str(self.admin_fee_percent)),
            admin_fee_fixed_default=Decimal(str(self.admin_fee_fixed_default)),
            financing=FinancingOptions(
                dynamic_calculation=self.financing_dynamic_calculation,
                eligibility_policy=self.financing_eligibility_policy,
                payment_decrement_dynamic=self.financing_payment_decrement_dynamic,
            ),
            commission_max_depth=self.commission_max_depth,
            commission_driver_types=tuple(DriverType(t) for t in self.commission_driver_types),
        )


class FinancialSettingsCreate(FinancialSettingsBase):
    pass


class FinancialSettingsUpdate(SQLModel):
    admin_fee_mode: Optional[AdminFeeMode] = None
    admin_fee_percent: Optional[Decimal] = None
    admin_fee_fixed_default: Optional[Decimal] = None
    financing_dynamic_calculation: Optional[bool] = None
    financing_eligibility_policy: Optional[EligibilityPolicy] = None
    financing_payment_decrement_dynamic: Optional[bool] = None
    commission_max_depth: Optional[int] = None
    commission_driver_types: Optional[List[str]] = None

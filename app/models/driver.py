from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum


class DriverType(str, Enum):
    AFFILIATE = "affiliate"
    RENTER = "renter"


class DriverStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class AdminFeeMode(str, Enum):
    PERCENT = "percent"
    FIXED = "fixed"


class DriverBase(SQLModel):
    name: str
    type: DriverType = Field(default=DriverType.AFFILIATE)
    status: DriverStatus = Field(default=DriverStatus.ACTIVE)
    email: Optional[str] = None
    iban: Optional[str] = None
    rental_fee: Decimal = Field(default=0, max_digits=10, decimal_places=2)

    # Claves de integración por plataforma
    ride_a_uuid: Optional[str] = Field(default=None, index=True)
    ride_b_email: Optional[str] = Field(default=None, index=True)
    fuel_card_number: Optional[str] = Field(default=None, index=True)
    toll_road_key: Optional[str] = Field(default=None, index=True)
    vehicle_plate: Optional[str] = Field(default=None, index=True)

    # Taxa adm personalizada (None = usar configuración global)
    admin_fee_mode: Optional[AdminFeeMode] = None
    admin_fee_value: Optional[Decimal] = Field(
        default=None, max_digits=10, decimal_places=2)

    # Isención de taxa adm (semanas restantes)
    admin_fee_exemption_weeks: int = Field(default=0, ge=0)
    admin_fee_exemption_reason: Optional[str] = None

    # Red de afiliados
    referred_by_id: Optional[str] = Field(
        default=None, foreign_key="driver.id", index=True)
    affiliate_level: int = Field(default=1, ge=1, le=3)


class Driver(DriverBase, table=True):
    id: str = Field(primary_key=True)
    created_at: datetime = Field(
        default_factory=datetime.utcnow, nullable=False)
    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        nullable=False,
        sa_column_kwargs={"onupdate": datetime.utcnow}
    )


class DriverUpsert(DriverBase):
    id: str


class AdminFeeExemptionUpdate(SQLModel):
    weeks: int = Field(ge=0)
    reason: Optional[str] = None

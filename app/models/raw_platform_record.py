from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4


class Platform(str, Enum):
    RIDE_A = "ride-a"        # viajes, clave = UUID del motorista
    RIDE_B = "ride-b"        # viajes, clave = email
    FUEL_CARD = "fuel-card"  # combustible, clave = número de tarjeta
    TOLL_ROAD = "toll-road"  # portagens, clave = matrícula o identificador


RIDE_PLATFORMS = (Platform.RIDE_A, Platform.RIDE_B)


class MatchMethod(str, Enum):
    INTEGRATION_KEY = "integration-key"
    PLATE = "plate"
    FUZZY_NAME = "fuzzy-name"
    MANUAL = "manual"


class PlatformRow(SQLModel):
    """Fila normalizada que entregan los parsers de cada plataforma."""
    reference_id: str
    reference_label: Optional[str] = None
    total_value: Decimal = Field(default=0, max_digits=12, decimal_places=2)
    total_trips: int = Field(default=0, ge=0)


class RawPlatformRecord(SQLModel, table=True):
    __tablename__ = "raw_platform_record"
    id: Optional[UUID] = Field(
        default_factory=uuid4, primary_key=True, unique=True)
    week_id: str = Field(index=True)
    platform: Platform = Field(index=True)
    reference_id: str
    reference_label: Optional[str] = None
    total_value: Decimal = Field(default=0, max_digits=12, decimal_places=2)
    total_trips: int = Field(default=0)
    driver_id: Optional[str] = Field(
        default=None, foreign_key="driver.id", index=True)
    driver_name: Optional[str] = None
    match_method: Optional[MatchMethod] = None
    imported_at: datetime = Field(
        default_factory=datetime.utcnow, nullable=False)


class ManualMapping(SQLModel):
    driver_id: str

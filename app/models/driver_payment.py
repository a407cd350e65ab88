from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON
from typing import List, Optional
from datetime import date, datetime
from enum import Enum
from decimal import Decimal
from uuid import uuid4


class PaymentStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


def new_payment_id() -> str:
    return str(uuid4())


class DriverPayment(SQLModel, table=True):
    """
    Entrada del ledger de pagos: inmutable una vez creada, salvo los campos del
    comprobante y la cancelación.
    """
    __tablename__ = "driver_payment"
    id: str = Field(default_factory=new_payment_id, primary_key=True)
    record_id: str = Field(index=True)  # driverId_weekId
    # Igual a record_id mientras el pago no esté cancelado: como es único,
    # la base de datos impide dos pagos activos para la misma semana.
    active_record_id: Optional[str] = Field(default=None, unique=True)
    driver_id: str = Field(foreign_key="driver.id", index=True)
    driver_name: Optional[str] = None
    week_id: str = Field(index=True)
    week_start: date
    week_end: date
    currency: str = Field(default="EUR")

    base_amount: Decimal = Field(
        default=0, max_digits=12, decimal_places=2)  # repasse
    bonus_amount: Decimal = Field(default=0, max_digits=12, decimal_places=2)
    discount_amount: Decimal = Field(
        default=0, max_digits=12, decimal_places=2)
    total_amount: Decimal = Field(default=0, max_digits=12, decimal_places=2)
    total_amount_cents: int = 0

    admin_fee_percentage: Decimal = Field(
        default=0, max_digits=7, decimal_places=4)
    admin_fee_value: Decimal = Field(
        default=0, max_digits=12, decimal_places=2)
    commission_paid: Decimal = Field(
        default=0, max_digits=12, decimal_places=2)

    # Entradas mínimas para reproducir el cálculo
    record_snapshot: dict = Field(
        default_factory=dict, sa_column=Column(JSON, nullable=False))
    # [{financing_id, installment_paid, remaining_installments, completed}]
    financing_processed: List[dict] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False))
    bonuses_marked: List[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False))
    exemption_consumed: bool = False

    iban: Optional[str] = None
    notes: Optional[str] = None
    status: PaymentStatus = Field(default=PaymentStatus.ACTIVE)
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None

    proof_url: Optional[str] = None
    proof_file_name: Optional[str] = None
    proof_uploaded_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

# Modelos Pydantic para operaciones


class PaymentProof(SQLModel):
    proof_url: str
    proof_file_name: Optional[str] = None


class DriverPaymentCreate(SQLModel):
    driver_id: str
    week_id: str
    discount_amount: Decimal = Field(
        default=0, ge=0, max_digits=12, decimal_places=2)
    notes: Optional[str] = None
    proof: Optional[PaymentProof] = None


class PaymentCancel(SQLModel):
    reason: Optional[str] = None

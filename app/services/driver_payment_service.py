import csv
import io
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.core.config import settings
from app.core.exceptions import AlreadyPaid, NotFound, PartialBatchFailure, PayoutError
from app.models.driver import AdminFeeMode, Driver, DriverStatus
from app.models.driver_payment import (
    DriverPayment, PaymentProof, PaymentStatus, new_payment_id
)
from app.models.driver_weekly_record import (
    DriverWeeklyRecord, WeeklyPaymentStatus, record_id_for
)
from app.models.financial_settings import FinancialConfig
from app.models.referral_bonus import BonusStatus, ReferralBonus
from app.services.financial_settings_service import get_financial_config
from app.services.financing_ledger import FinancingLedger
from app.services.statement_calculator import statement_snapshot
from app.services.weekly_record_service import WeeklyRecordService
from app.utils.money import quantize, to_cents, to_decimal
from app.utils.weeks import parse_week

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "payment_id", "driver_id", "driver_name", "iban", "week_id",
    "base_amount", "bonus_amount", "discount_amount", "total_amount",
    "admin_fee_value", "commission_paid", "currency", "created_at",
]


class PayWeekReport(BaseModel):
    week_id: str
    paid: List[str] = []
    skipped: List[dict] = []
    errors: List[dict] = []


class PaymentProcessor:
    def __init__(self, db: Session, config: Optional[FinancialConfig] = None):
        self.db = db
        self.config = config or get_financial_config(db)
        self.records = WeeklyRecordService(db, self.config)
        self.ledger = FinancingLedger(db)

    def pay(
        self,
        driver_id: str,
        week_id: str,
        discount_amount: Decimal = Decimal("0"),
        notes: Optional[str] = None,
        proof: Optional[PaymentProof] = None,
    ) -> DriverPayment:
        """
        Paga la semana de un motorista. Todo se aplica en una sola transacción:
        descuento de financiamientos, bonos, isención, el DriverPayment y el
        estado del registro semanal. Si algo falla no queda nada escrito.
        """
        week = parse_week(week_id)
        driver = self.db.get(Driver, driver_id)
        if not driver:
            raise NotFound(f"Driver {driver_id} not found")

        existing = self.records.active_payment(driver.id, week.week_id)
        if existing:
            raise AlreadyPaid(driver.id, week.week_id, existing.id)

        try:
            # Cálculo fresco, nunca un valor cacheado
            statement, totals = self.records.build_statement(driver, week)
            payment_id = new_payment_id()

            financing_processed = []
            for financing in self.ledger.payable_for(driver.id, week, self.config.financing):
                application = self.ledger.apply_payment(financing.id, payment_id)
                if not application.already_processed:
                    financing_processed.append(application.model_dump())

            bonuses = self._mark_bonuses(statement.bonus_ids, payment_id, week.week_id)
            exemption_consumed = self._consume_exemption(driver)

            discount = quantize(discount_amount)
            total = quantize(statement.repasse + statement.bonus_amount - discount)
            snapshot = statement_snapshot(statement, totals, self.config)

            payment = DriverPayment(
                id=payment_id,
                record_id=statement.record_id,
                active_record_id=statement.record_id,
                driver_id=driver.id,
                driver_name=driver.name,
                week_id=week.week_id,
                week_start=week.start,
                week_end=week.end,
                base_amount=statement.repasse,
                bonus_amount=statement.bonus_amount,
                discount_amount=discount,
                total_amount=total,
                total_amount_cents=to_cents(total),
                admin_fee_percentage=(statement.admin_fee_rate
                                      if statement.admin_fee_mode == AdminFeeMode.PERCENT else Decimal("0")),
                admin_fee_value=statement.despesas_adm,
                commission_paid=statement.commission_amount,
                record_snapshot=snapshot,
                financing_processed=financing_processed,
                bonuses_marked=bonuses,
                exemption_consumed=exemption_consumed,
                iban=driver.iban,
                notes=notes,
                currency=settings.CURRENCY,
            )
            if proof:
                payment.proof_url = proof.proof_url
                payment.proof_file_name = proof.proof_file_name
                payment.proof_uploaded_at = datetime.utcnow()
            self.db.add(payment)
            self._mark_record(driver.id, week.week_id, payment)
            self.db.commit()
        except IntegrityError:
            # Otro proceso pagó la misma semana entre la verificación y el commit
            self.db.rollback()
            raise AlreadyPaid(driver.id, week.week_id)
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(payment)
        logger.info("Pago %s registrado: %s %s total=%s",
                    payment.id, driver.id, week.week_id, payment.total_amount)
        return payment

    def _mark_bonuses(self, bonus_ids: List[str], payment_id: str, week_id: str) -> List[str]:
        marked = []
        for bonus in self.db.exec(
            select(ReferralBonus).where(ReferralBonus.status == BonusStatus.PENDING)
        ).all():
            if str(bonus.id) not in bonus_ids:
                continue
            bonus.status = BonusStatus.PAID
            bonus.paid_week_id = week_id
            bonus.payment_id = payment_id
            bonus.updated_at = datetime.utcnow()
            self.db.add(bonus)
            marked.append(str(bonus.id))
        return marked

    def _consume_exemption(self, driver: Driver) -> bool:
        if (driver.admin_fee_exemption_weeks or 0) <= 0:
            return False
        driver.admin_fee_exemption_weeks -= 1
        if driver.admin_fee_exemption_weeks == 0:
            logger.info("Isención de taxa adm terminada para %s", driver.id)
        self.db.add(driver)
        return True

    def _mark_record(self, driver_id: str, week_id: str, payment: Optional[DriverPayment]):
        record_id = record_id_for(driver_id, week_id)
        record = self.db.get(DriverWeeklyRecord, record_id)
        if not record:
            record = DriverWeeklyRecord(
                id=record_id, driver_id=driver_id, week_id=week_id)
        if payment:
            record.payment_status = WeeklyPaymentStatus.PAID
            record.payment_id = payment.id
            record.paid_at = datetime.utcnow()
        else:
            record.payment_status = WeeklyPaymentStatus.PENDING
            record.payment_id = None
            record.paid_at = None
        record.updated_at = datetime.utcnow()
        self.db.add(record)

    def pay_week(self, week_id: str) -> PayWeekReport:
        """
        Paga a todos los motoristas resueltos, activos y pendientes de la
        semana. Cada motorista es una transacción independiente.
        """
        week = parse_week(week_id)
        report = PayWeekReport(week_id=week.week_id)
        for driver_id in self.records.week_driver_ids(week.week_id):
            driver = self.db.get(Driver, driver_id)
            if driver is None or driver.status != DriverStatus.ACTIVE:
                report.skipped.append({"driver_id": driver_id, "reason": "inactive"})
                continue
            if self.records.active_payment(driver_id, week.week_id):
                report.skipped.append({"driver_id": driver_id, "reason": "already paid"})
                continue
            try:
                payment = self.pay(driver_id, week.week_id)
                report.paid.append(payment.id)
            except PayoutError as e:
                logger.warning("No se pudo pagar a %s en %s: %s",
                               driver_id, week.week_id, e.message)
                report.errors.append({"driver_id": driver_id, "error": e.message})
            except Exception as e:
                logger.exception("Error inesperado pagando a %s en %s",
                                 driver_id, week.week_id)
                report.errors.append({"driver_id": driver_id, "error": str(e)})
        if report.errors:
            failure = PartialBatchFailure(
                f"pay week {week.week_id}",
                [(e["driver_id"], e["error"]) for e in report.errors])
            logger.warning(failure.message)
        return report

    def get_payment(self, payment_id: str) -> DriverPayment:
        payment = self.db.get(DriverPayment, payment_id)
        if not payment:
            raise NotFound(f"Payment {payment_id} not found")
        return payment

    def list_payments(
        self,
        week_id: Optional[str] = None,
        driver_id: Optional[str] = None,
        status: Optional[PaymentStatus] = None,
    ) -> List[DriverPayment]:
        query = select(DriverPayment)
        if week_id:
            query = query.where(DriverPayment.week_id == parse_week(week_id).week_id)
        if driver_id:
            query = query.where(DriverPayment.driver_id == driver_id)
        if status:
            query = query.where(DriverPayment.status == status)
        return list(self.db.exec(query.order_by(DriverPayment.created_at)).all())

    def attach_proof(self, payment_id: str, proof: PaymentProof) -> DriverPayment:
        """Único cambio permitido en un pago además de la cancelación."""
        payment = self.get_payment(payment_id)
        payment.proof_url = proof.proof_url
        payment.proof_file_name = proof.proof_file_name
        payment.proof_uploaded_at = datetime.utcnow()
        payment.updated_at = datetime.utcnow()
        try:
            self.db.add(payment)
            self.db.commit()
            self.db.refresh(payment)
        except Exception:
            self.db.rollback()
            raise
        return payment

    def cancel_payment(self, payment_id: str, reason: Optional[str] = None) -> DriverPayment:
        """
        Cancela un pago y deshace sus efectos en la misma transacción. No se
        permite si el pago completó un financiamiento.
        """
        payment = self.get_payment(payment_id)
        if payment.status == PaymentStatus.CANCELLED:
            raise PayoutError(f"Payment {payment_id} is already cancelled")

        try:
            for entry in payment.financing_processed or []:
                self.ledger.revert_payment(entry["financing_id"], payment.id)

            marked = set(payment.bonuses_marked or [])
            for bonus in self.db.exec(
                select(ReferralBonus).where(ReferralBonus.payment_id == payment.id)
            ).all():
                if str(bonus.id) not in marked:
                    continue
                bonus.status = BonusStatus.PENDING
                bonus.paid_week_id = None
                bonus.payment_id = None
                self.db.add(bonus)

            if payment.exemption_consumed:
                driver = self.db.get(Driver, payment.driver_id)
                if driver:
                    driver.admin_fee_exemption_weeks = (driver.admin_fee_exemption_weeks or 0) + 1
                    self.db.add(driver)

            payment.status = PaymentStatus.CANCELLED
            payment.active_record_id = None
            payment.cancelled_at = datetime.utcnow()
            payment.cancel_reason = reason
            payment.updated_at = datetime.utcnow()
            self.db.add(payment)
            self._mark_record(payment.driver_id, payment.week_id, None)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(payment)
        logger.info("Pago %s cancelado (%s)", payment.id, reason or "sin motivo")
        return payment

    def export_week_csv(self, week_id: str) -> str:
        """Pagos activos de la semana en CSV para contabilidad."""
        payments = self.list_payments(week_id=week_id, status=PaymentStatus.ACTIVE)
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS)
        writer.writeheader()
        for p in payments:
            writer.writerow({
                "payment_id": p.id,
                "driver_id": p.driver_id,
                "driver_name": p.driver_name or "",
                "iban": p.iban or "",
                "week_id": p.week_id,
                "base_amount": quantize(p.base_amount),
                "bonus_amount": quantize(p.bonus_amount),
                "discount_amount": quantize(p.discount_amount),
                "total_amount": quantize(p.total_amount),
                "admin_fee_value": quantize(p.admin_fee_value),
                "commission_paid": quantize(to_decimal(p.commission_paid)),
                "currency": p.currency,
                "created_at": p.created_at.isoformat(),
            })
        return buffer.getvalue()

"""
Reconciliación del estado derivado contra el ledger de pagos.

El ledger (DriverPayment activos) es la única fuente de verdad. El
reconciliador reconstruye processed_records / remaining_weeks / status de
cada financiamiento y el payment_status de cada DriverWeeklyRecord, y solo
escribe cuando algo difiere. Ejecutarlo dos veces seguidas no produce
escrituras en la segunda.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel
from sqlmodel import Session, select

from app.core.exceptions import LedgerDrift
from app.models.driver_payment import DriverPayment, PaymentStatus
from app.models.driver_weekly_record import DriverWeeklyRecord, WeeklyPaymentStatus
from app.models.financing import Financing, FinancingStatus
from app.services.financing_ledger import expected_state
from app.utils.weeks import parse_week

logger = logging.getLogger(__name__)


class ReconciliationReport(BaseModel):
    week_id: Optional[str] = None
    financings_checked: int = 0
    records_checked: int = 0
    writes: int = 0
    drift: List[dict] = []
    errors: List[dict] = []


class Reconciler:
    def __init__(self, session: Session):
        self.session = session

    def _active_payments(self, week_id: Optional[str] = None) -> List[DriverPayment]:
        query = select(DriverPayment).where(
            DriverPayment.status == PaymentStatus.ACTIVE)
        if week_id:
            query = query.where(DriverPayment.week_id == week_id)
        return list(self.session.exec(
            query.order_by(DriverPayment.created_at, DriverPayment.id)).all())

    def _processed_by_financing(self) -> Dict[str, List[str]]:
        processed: Dict[str, List[str]] = {}
        for payment in self._active_payments():
            for entry in payment.financing_processed or []:
                ids = processed.setdefault(str(entry["financing_id"]), [])
                if payment.id not in ids:
                    ids.append(payment.id)
        return processed

    def run(self, week_id: Optional[str] = None) -> ReconciliationReport:
        """
        Recorre todos los financiamientos y los registros semanales (de una
        semana o de todas). Cada unidad se guarda por separado; un error en
        una no detiene el resto.
        """
        if week_id:
            week_id = parse_week(week_id).week_id
        report = ReconciliationReport(week_id=week_id)

        processed = self._processed_by_financing()
        financing_ids = [f.id for f in self.session.exec(
            select(Financing).order_by(Financing.created_at)).all()]
        for financing_id in financing_ids:
            report.financings_checked += 1
            try:
                self._reconcile_financing(financing_id, processed, report)
            except Exception as e:
                self.session.rollback()
                logger.exception("Error reconciliando el financiamiento %s", financing_id)
                report.errors.append({"financing_id": str(financing_id), "error": str(e)})

        self._reconcile_records(week_id, report)

        logger.info("Reconciliación %s: %d escrituras, %d drift, %d errores",
                    week_id or "completa", report.writes, len(report.drift), len(report.errors))
        return report

    def _reconcile_financing(self, financing_id, processed: Dict[str, List[str]], report: ReconciliationReport):
        financing = self.session.get(Financing, financing_id)
        expected_ids = processed.get(str(financing.id), [])
        current_ids = list(financing.processed_records or [])
        state = expected_state(financing, expected_ids)

        changes = {}
        if set(current_ids) != set(expected_ids):
            changes["processed_records"] = {"from": current_ids, "to": expected_ids}
        if financing.remaining_weeks != state["remaining_weeks"]:
            changes["remaining_weeks"] = {
                "from": financing.remaining_weeks, "to": state["remaining_weeks"]}
        if financing.status != state["status"]:
            changes["status"] = {
                "from": financing.status.value, "to": state["status"].value}
        if not changes:
            return

        # Un financiamiento completado nunca se reabre: se reporta sin reparar
        if financing.status == FinancingStatus.COMPLETED:
            drift = LedgerDrift("financing", financing.id, changes, repaired=False)
            logger.warning("%s (no reparado: financiamiento completado)", drift.message)
            report.drift.append(drift.as_dict())
            return

        financing.processed_records = expected_ids
        financing.remaining_weeks = state["remaining_weeks"]
        if state["status"] == FinancingStatus.COMPLETED:
            financing.status = FinancingStatus.COMPLETED
            financing.end_date = financing.end_date or datetime.utcnow()
        financing.updated_at = datetime.utcnow()
        self.session.add(financing)
        self.session.commit()

        drift = LedgerDrift("financing", financing.id, changes)
        logger.warning(drift.message)
        report.drift.append(drift.as_dict())
        report.writes += 1

    def _reconcile_records(self, week_id: Optional[str], report: ReconciliationReport):
        payments = {p.record_id: p for p in self._active_payments(week_id)}

        query = select(DriverWeeklyRecord)
        if week_id:
            query = query.where(DriverWeeklyRecord.week_id == week_id)
        record_ids = [r.id for r in self.session.exec(
            query.order_by(DriverWeeklyRecord.id)).all()]

        for record_id in record_ids:
            report.records_checked += 1
            try:
                record = self.session.get(DriverWeeklyRecord, record_id)
                self._reconcile_record(record, payments.pop(record_id, None), report)
            except Exception as e:
                self.session.rollback()
                logger.exception("Error reconciliando el registro %s", record_id)
                report.errors.append({"record_id": record_id, "error": str(e)})

        # Pagos sin registro semanal
        for record_id, payment in payments.items():
            report.records_checked += 1
            try:
                record = DriverWeeklyRecord(
                    id=record_id, driver_id=payment.driver_id, week_id=payment.week_id)
                self._reconcile_record(record, payment, report)
            except Exception as e:
                self.session.rollback()
                logger.exception("Error creando el registro %s", record_id)
                report.errors.append({"record_id": record_id, "error": str(e)})

    def _reconcile_record(self, record: DriverWeeklyRecord, payment: Optional[DriverPayment], report: ReconciliationReport):
        if payment:
            expected = {
                "payment_status": WeeklyPaymentStatus.PAID,
                "payment_id": payment.id,
            }
        else:
            expected = {
                "payment_status": WeeklyPaymentStatus.PENDING,
                "payment_id": None,
            }

        changes = {}
        for field, value in expected.items():
            current = getattr(record, field)
            if current != value:
                changes[field] = {
                    "from": getattr(current, "value", current),
                    "to": getattr(value, "value", value),
                }
        if not changes:
            return

        record.payment_status = expected["payment_status"]
        record.payment_id = expected["payment_id"]
        record.paid_at = payment.created_at if payment else None
        record.updated_at = datetime.utcnow()
        self.session.add(record)
        self.session.commit()

        drift = LedgerDrift("weekly_record", record.id, changes)
        logger.warning(drift.message)
        report.drift.append(drift.as_dict())
        report.writes += 1

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlmodel import Session, select

from app.core.exceptions import FinancingClosed, NotFound, PayoutError
from app.models.driver import Driver
from app.models.financial_settings import FinancingOptions
from app.models.financing import (
    Financing, FinancingApplication, FinancingCreate, FinancingStatus
)
from app.services.statement_calculator import is_financing_eligible
from app.utils.weeks import Week

logger = logging.getLogger(__name__)


def expected_state(financing: Financing, processed: Sequence[str]) -> Dict[str, object]:
    """remaining_weeks y status que corresponden a un conjunto de pagos."""
    if financing.is_unlimited:
        return {"remaining_weeks": None, "status": financing.status}
    remaining = max(0, financing.weeks - len(set(processed)))
    status = FinancingStatus.COMPLETED if remaining == 0 else FinancingStatus.ACTIVE
    return {"remaining_weeks": remaining, "status": status}


class FinancingLedger:
    """
    Libro de financiamientos. apply_payment y revert_payment no hacen commit:
    forman parte de la transacción del pago que los invoca.
    """

    def __init__(self, session: Session):
        self.session = session

    def create_financing(self, data: FinancingCreate) -> Financing:
        if not self.session.get(Driver, data.driver_id):
            raise NotFound(f"Driver {data.driver_id} not found")
        financing = Financing(
            **data.model_dump(),
            remaining_weeks=data.weeks,
            status=FinancingStatus.ACTIVE,
        )
        try:
            self.session.add(financing)
            self.session.commit()
            self.session.refresh(financing)
        except Exception:
            self.session.rollback()
            raise
        logger.info("Financiamiento %s creado para %s (%s semanas)",
                    financing.id, financing.driver_id, financing.weeks or "sin límite")
        return financing

    def get_financing(self, financing_id) -> Financing:
        financing = self.session.get(Financing, UUID(str(financing_id)))
        if not financing:
            raise NotFound(f"Financing {financing_id} not found")
        return financing

    def list_financings(self, driver_id: Optional[str] = None, status: Optional[FinancingStatus] = None) -> List[Financing]:
        query = select(Financing)
        if driver_id:
            query = query.where(Financing.driver_id == driver_id)
        if status:
            query = query.where(Financing.status == status)
        return list(self.session.exec(query.order_by(Financing.created_at)).all())

    def active_for_driver(self, driver_id: str) -> List[Financing]:
        return self.list_financings(driver_id, FinancingStatus.ACTIVE)

    def payable_for(self, driver_id: str, week: Week, options: FinancingOptions) -> List[Financing]:
        """
        Financiamientos que un pago de la semana debe descontar: los elegibles
        para la semana, o todos los activos si el descuento no es dinámico.
        """
        active = self.active_for_driver(driver_id)
        if not options.payment_decrement_dynamic:
            return active
        return [f for f in active if is_financing_eligible(f, week, options)]

    def _application(self, financing: Financing, already_processed: bool,
                     installment_paid: int = 0) -> FinancingApplication:
        return FinancingApplication(
            financing_id=str(financing.id),
            installment_paid=installment_paid,
            remaining_installments=financing.remaining_weeks,
            completed=financing.status == FinancingStatus.COMPLETED,
            already_processed=already_processed,
        )

    def apply_payment(self, financing_id, payment_id: str) -> FinancingApplication:
        """
        Descuenta una parcela por el pago indicado. Si el pago ya fue procesado
        o el financiamiento está completado, no cambia nada y devuelve el
        estado actual.
        """
        financing = self.get_financing(financing_id)
        processed = list(financing.processed_records or [])
        if payment_id in processed:
            return self._application(financing, already_processed=True)
        if financing.status == FinancingStatus.COMPLETED:
            return self._application(financing, already_processed=False)

        processed.append(payment_id)
        financing.processed_records = processed
        state = expected_state(financing, processed)
        financing.remaining_weeks = state["remaining_weeks"]
        if state["status"] == FinancingStatus.COMPLETED:
            financing.status = FinancingStatus.COMPLETED
            financing.end_date = datetime.utcnow()
            logger.info("Financiamiento %s completado con el pago %s",
                        financing.id, payment_id)
        financing.updated_at = datetime.utcnow()
        self.session.add(financing)
        self.session.flush()
        return self._application(
            financing, already_processed=False,
            installment_paid=0 if financing.is_unlimited else 1)

    def revert_payment(self, financing_id, payment_id: str) -> FinancingApplication:
        """Deshace el descuento de un pago cancelado. Un financiamiento completado no se reabre."""
        financing = self.get_financing(financing_id)
        processed = list(financing.processed_records or [])
        if payment_id not in processed:
            return self._application(financing, already_processed=False)
        if financing.status == FinancingStatus.COMPLETED:
            raise FinancingClosed(financing.id)

        processed.remove(payment_id)
        financing.processed_records = processed
        financing.remaining_weeks = expected_state(
            financing, processed)["remaining_weeks"]
        financing.updated_at = datetime.utcnow()
        self.session.add(financing)
        self.session.flush()
        return self._application(financing, already_processed=False)

    def complete_financing(self, financing_id) -> Financing:
        """
        Cierre administrativo. Solo aplica a financiamientos sin plazo; los
        que tienen plazo se completan con los pagos.
        """
        financing = self.get_financing(financing_id)
        if financing.status == FinancingStatus.COMPLETED:
            raise FinancingClosed(
                financing.id, f"Financing {financing.id} is already completed")
        if not financing.is_unlimited:
            raise PayoutError(
                f"Financing {financing.id} has a fixed term and completes through payments")
        financing.status = FinancingStatus.COMPLETED
        financing.end_date = datetime.utcnow()
        try:
            self.session.add(financing)
            self.session.commit()
            self.session.refresh(financing)
        except Exception:
            self.session.rollback()
            raise
        logger.info("Financiamiento %s cerrado por un administrador", financing.id)
        return financing

from fastapi import APIRouter
from typing import Optional

from app.core.db import SessionDep
from app.core.exceptions import PayoutError, to_http_exception
from app.services.reconciler import Reconciler, ReconciliationReport

router = APIRouter(prefix="/reconciliation", tags=["ADMIN: Reconciliation"])


@router.post("/run", response_model=ReconciliationReport)
def run_reconciliation(session: SessionDep, week_id: Optional[str] = None):
    """
    Reconstruye el estado de financiamientos y registros semanales desde el
    ledger de pagos. Se puede ejecutar cuantas veces se quiera.
    """
    try:
        return Reconciler(session).run(week_id)
    except PayoutError as e:
        raise to_http_exception(e)

from fastapi import APIRouter, status
from typing import List, Optional
from uuid import UUID

from app.core.db import SessionDep
from app.core.exceptions import PayoutError, to_http_exception
from app.models.financing import Financing, FinancingCreate, FinancingStatus
from app.services.financing_ledger import FinancingLedger

router = APIRouter(prefix="/financing", tags=["financing"])


@router.post("/", response_model=Financing, status_code=status.HTTP_201_CREATED)
def create_financing(data: FinancingCreate, session: SessionDep):
    """
    Registra un préstamo o descuento. Sin `weeks` el financiamiento no tiene
    plazo: cobra intereses cada semana y solo se cierra manualmente.
    """
    try:
        return FinancingLedger(session).create_financing(data)
    except PayoutError as e:
        raise to_http_exception(e)


@router.get("/", response_model=List[Financing])
def list_financings(
    session: SessionDep,
    driver_id: Optional[str] = None,
    financing_status: Optional[FinancingStatus] = None,
):
    return FinancingLedger(session).list_financings(driver_id, financing_status)


@router.get("/{financing_id}", response_model=Financing)
def get_financing(financing_id: UUID, session: SessionDep):
    try:
        return FinancingLedger(session).get_financing(financing_id)
    except PayoutError as e:
        raise to_http_exception(e)


@router.post("/{financing_id}/complete", response_model=Financing)
def complete_financing(financing_id: UUID, session: SessionDep):
    """
    Cierre administrativo de un financiamiento sin plazo.
    """
    try:
        return FinancingLedger(session).complete_financing(financing_id)
    except PayoutError as e:
        raise to_http_exception(e)

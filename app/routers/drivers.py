from fastapi import APIRouter, status
from typing import List, Optional

from app.core.db import SessionDep
from app.core.exceptions import PayoutError, to_http_exception
from app.models.driver import Driver, DriverUpsert, DriverStatus, AdminFeeExemptionUpdate
from app.models.referral_bonus import ReferralBonus, ReferralBonusCreate, BonusStatus
from app.services.driver_service import DriverService

router = APIRouter(prefix="/drivers", tags=["drivers"])


@router.post("/", response_model=Driver)
def upsert_driver(data: DriverUpsert, session: SessionDep):
    """
    Sincroniza un motorista desde el sistema de gestión de motoristas.
    Crea el registro o actualiza el existente con el mismo id.
    """
    try:
        return DriverService(session).upsert_driver(data)
    except PayoutError as e:
        raise to_http_exception(e)


@router.get("/", response_model=List[Driver])
def list_drivers(session: SessionDep, driver_status: Optional[DriverStatus] = None):
    return DriverService(session).list_drivers(driver_status)


@router.get("/{driver_id}", response_model=Driver)
def get_driver(driver_id: str, session: SessionDep):
    try:
        return DriverService(session).get_driver(driver_id)
    except PayoutError as e:
        raise to_http_exception(e)


@router.put("/{driver_id}/admin-fee-exemption", response_model=Driver)
def set_exemption(driver_id: str, data: AdminFeeExemptionUpdate, session: SessionDep):
    """
    Fija las semanas de isención de taxa adm. Con weeks=0 se elimina.
    """
    try:
        return DriverService(session).set_exemption(driver_id, data)
    except PayoutError as e:
        raise to_http_exception(e)


@router.post("/bonuses", response_model=ReferralBonus, status_code=status.HTTP_201_CREATED)
def create_bonus(data: ReferralBonusCreate, session: SessionDep):
    """
    Registra un bono de indicación pendiente; se paga con el próximo pago semanal.
    """
    try:
        return DriverService(session).create_bonus(data)
    except PayoutError as e:
        raise to_http_exception(e)


@router.get("/{driver_id}/bonuses", response_model=List[ReferralBonus])
def list_bonuses(driver_id: str, session: SessionDep, bonus_status: Optional[BonusStatus] = None):
    return DriverService(session).list_bonuses(driver_id, bonus_status)

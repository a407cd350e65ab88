from fastapi import APIRouter, status
from typing import List
from uuid import UUID

from app.core.db import SessionDep
from app.core.exceptions import PayoutError, to_http_exception
from app.models.commission_rule import (
    CommissionRule, CommissionRuleCreate, CommissionRuleUpdate,
    CommissionRuleToggle, CommissionResult
)
from app.services.commission_engine import CommissionEngine
from app.services.financial_settings_service import get_financial_config

router = APIRouter(prefix="/commission-rules", tags=["ADMIN: Commission Rules"])


def _engine(session) -> CommissionEngine:
    return CommissionEngine(session, get_financial_config(session))


@router.post("/", response_model=CommissionRule, status_code=status.HTTP_201_CREATED)
def create_rule(data: CommissionRuleCreate, session: SessionDep):
    return _engine(session).create_rule(data)


@router.get("/", response_model=List[CommissionRule])
def list_rules(session: SessionDep, active_only: bool = False):
    return _engine(session).list_rules(active_only)


@router.put("/{rule_id}", response_model=CommissionRule)
def update_rule(rule_id: UUID, data: CommissionRuleUpdate, session: SessionDep):
    """
    Crea una nueva versión de la regla y desactiva la actual.
    Las semanas ya pagadas conservan la comisión con la que se pagaron.
    """
    try:
        return _engine(session).update_rule(rule_id, data)
    except PayoutError as e:
        raise to_http_exception(e)


@router.patch("/{rule_id}/active", response_model=CommissionRule)
def toggle_rule(rule_id: UUID, data: CommissionRuleToggle, session: SessionDep):
    try:
        return _engine(session).toggle_rule(rule_id, data.active)
    except PayoutError as e:
        raise to_http_exception(e)


@router.get("/compute/{week_id}/{driver_id}", response_model=CommissionResult)
def compute_commission(week_id: str, driver_id: str, session: SessionDep):
    """
    Calcula la comisión de un motorista para la semana, con el detalle de
    cada regla aplicada o rechazada.
    """
    try:
        return _engine(session).compute_commission(driver_id, week_id)
    except PayoutError as e:
        raise to_http_exception(e)

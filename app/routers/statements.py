from fastapi import APIRouter
from typing import List

from app.core.db import SessionDep
from app.core.exceptions import PayoutError, to_http_exception
from app.models.driver_weekly_record import WeeklyStatement
from app.services.weekly_record_service import WeeklyRecordService

router = APIRouter(prefix="/statements", tags=["statements"])


@router.get("/{week_id}", response_model=List[WeeklyStatement])
def list_week_statements(week_id: str, session: SessionDep):
    """
    Extractos de todos los motoristas resueltos de la semana.
    Los pagados se muestran congelados desde el pago.
    """
    try:
        return WeeklyRecordService(session).list_week_statements(week_id)
    except PayoutError as e:
        raise to_http_exception(e)


@router.get("/{week_id}/{driver_id}", response_model=WeeklyStatement)
def get_statement(week_id: str, driver_id: str, session: SessionDep):
    try:
        return WeeklyRecordService(session).get_statement(driver_id, week_id)
    except PayoutError as e:
        raise to_http_exception(e)

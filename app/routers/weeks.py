from fastapi import APIRouter, HTTPException, status
from typing import List
from uuid import UUID
import logging

from app.core.db import SessionDep
from app.core.exceptions import PayoutError, to_http_exception
from app.models.raw_platform_record import Platform, RawPlatformRecord, ManualMapping
from app.models.weekly_data_sources import (
    WeeklyDataSources, WeeklyDataSourcesCreate, PlatformImport, WeekStats
)
from app.services.identity_resolver import IdentityResolverService, ResolutionReport
from app.services.weekly_sources_service import WeeklySourcesService, ImportReport

router = APIRouter(prefix="/weeks", tags=["weeks"])


@router.post("/", response_model=WeeklyDataSources, status_code=status.HTTP_201_CREATED)
def create_week(data: WeeklyDataSourcesCreate, session: SessionDep):
    """
    Abre una semana (idempotente).
    """
    try:
        return WeeklySourcesService(session).create_week(data.week_id, data.notes)
    except PayoutError as e:
        raise to_http_exception(e)


@router.get("/", response_model=List[WeeklyDataSources])
def list_weeks(session: SessionDep):
    return WeeklySourcesService(session).list_weeks()


@router.get("/{week_id}", response_model=WeeklyDataSources)
def get_week(week_id: str, session: SessionDep):
    try:
        return WeeklySourcesService(session).get_week(week_id)
    except PayoutError as e:
        raise to_http_exception(e)


@router.get("/{week_id}/stats", response_model=WeekStats)
def get_week_stats(week_id: str, session: SessionDep):
    try:
        return WeeklySourcesService(session).week_stats(week_id)
    except PayoutError as e:
        raise to_http_exception(e)


@router.post("/{week_id}/imports/{platform}", response_model=ImportReport)
def import_platform(week_id: str, platform: Platform, payload: PlatformImport, session: SessionDep):
    """
    Importa las filas normalizadas de una plataforma para la semana.
    Reemplaza la importación anterior de esa plataforma, ejecuta la
    resolución de identidad y actualiza el estado de la fuente.
    """
    try:
        return WeeklySourcesService(session).import_platform(week_id, platform, payload)
    except PayoutError as e:
        raise to_http_exception(e)
    except Exception:
        logging.exception("Unexpected error importing %s for %s", platform.value, week_id)
        raise HTTPException(
            status_code=500, detail="Unexpected error importing platform data")


@router.post("/{week_id}/resolve", response_model=ResolutionReport)
def resolve_week(week_id: str, session: SessionDep):
    """
    Vuelve a ejecutar la resolución sobre los registros sin motorista.
    Nunca cambia un driver_id ya asignado.
    """
    try:
        return IdentityResolverService(session).resolve_week(week_id)
    except PayoutError as e:
        raise to_http_exception(e)


@router.get("/{week_id}/unmapped", response_model=List[RawPlatformRecord])
def list_unmapped(week_id: str, session: SessionDep):
    try:
        return IdentityResolverService(session).list_unmapped(week_id)
    except PayoutError as e:
        raise to_http_exception(e)


@router.put("/records/{record_id}/driver", response_model=RawPlatformRecord)
def map_record(record_id: UUID, data: ManualMapping, session: SessionDep):
    """
    Asignación manual de un registro a un motorista.
    """
    try:
        return IdentityResolverService(session).manual_map(record_id, data.driver_id)
    except PayoutError as e:
        raise to_http_exception(e)


@router.delete("/records/{record_id}/driver", response_model=RawPlatformRecord)
def clear_record_mapping(record_id: UUID, session: SessionDep):
    """
    Quita el motorista de un registro para que la resolución pueda volver a asignarlo.
    """
    try:
        return IdentityResolverService(session).clear_mapping(record_id)
    except PayoutError as e:
        raise to_http_exception(e)

import logging
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel
from sqlmodel import Session, select

from app.core.exceptions import NotFound, PartialBatchFailure
from app.models.raw_platform_record import Platform, RawPlatformRecord
from app.models.weekly_data_sources import (
    DataSourceStatus, PlatformImport, SourceStatus, WeeklyDataSources, WeekStats
)
from app.services.identity_resolver import IdentityResolverService, ResolutionReport
from app.utils.weeks import parse_week

logger = logging.getLogger(__name__)


class ImportReport(BaseModel):
    week_id: str
    platform: Platform
    status: SourceStatus
    records_count: int
    drivers_count: int
    resolution: ResolutionReport
    errors: List[dict] = []


class WeeklySourcesService:
    def __init__(self, session: Session):
        self.session = session

    def create_week(self, week_id: str, notes: Optional[str] = None) -> WeeklyDataSources:
        """
        Abre una semana. Es idempotente: si ya existe se devuelve la existente.
        """
        week = parse_week(week_id)
        existing = self.session.get(WeeklyDataSources, week.week_id)
        if existing:
            return existing
        sources = WeeklyDataSources(
            week_id=week.week_id,
            week_start=week.start,
            week_end=week.end,
            notes=notes,
        )
        self.session.add(sources)
        self.session.commit()
        self.session.refresh(sources)
        logger.info("Semana %s creada", week.week_id)
        return sources

    def get_week(self, week_id: str) -> WeeklyDataSources:
        week = parse_week(week_id)
        sources = self.session.get(WeeklyDataSources, week.week_id)
        if not sources:
            raise NotFound(f"Week {week.week_id} not found")
        return sources

    def list_weeks(self) -> List[WeeklyDataSources]:
        return list(self.session.exec(
            select(WeeklyDataSources).order_by(WeeklyDataSources.week_id.desc())
        ).all())

    def import_platform(self, week_id: str, platform: Platform, payload: PlatformImport) -> ImportReport:
        """
        Reimporta las filas de una plataforma para la semana: borra los
        registros anteriores, crea los nuevos, ejecuta la resolución de
        identidad y actualiza el estado de la fuente.
        """
        sources = self.create_week(week_id)
        week_id = sources.week_id
        errors = []
        records = []

        try:
            previous = self.session.exec(
                select(RawPlatformRecord)
                .where(RawPlatformRecord.week_id == week_id)
                .where(RawPlatformRecord.platform == platform)
            ).all()
            for old in previous:
                self.session.delete(old)
            self.session.flush()
            for index, row in enumerate(payload.rows):
                reference_id = (row.reference_id or "").strip()
                if not reference_id:
                    errors.append({"row": index, "error": "Empty reference id"})
                    continue
                record = RawPlatformRecord(
                    week_id=week_id,
                    platform=platform,
                    reference_id=reference_id,
                    reference_label=row.reference_label,
                    total_value=row.total_value,
                    total_trips=row.total_trips,
                )
                self.session.add(record)
                records.append(record)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        resolution = IdentityResolverService(self.session).resolve_records(
            records, ResolutionReport(week_id=week_id))
        errors.extend(resolution.errors)

        drivers = {r.driver_id for r in records if r.driver_id}
        status = SourceStatus.PARTIAL if errors else SourceStatus.COMPLETE
        self._set_source_status(sources, platform, DataSourceStatus(
            status=status,
            origin=payload.origin,
            imported_at=datetime.utcnow(),
            records_count=len(records),
            drivers_count=len(drivers),
            last_error=errors[-1]["error"] if errors else None,
        ))
        if errors:
            failure = PartialBatchFailure(
                f"import {week_id}/{platform.value}",
                [(e.get("row", e.get("record_id")), e["error"]) for e in errors])
            logger.warning(failure.message)
        else:
            logger.info("Importación %s/%s: %d registros, %d motoristas",
                        week_id, platform.value, len(records), len(drivers))

        return ImportReport(
            week_id=week_id,
            platform=platform,
            status=status,
            records_count=len(records),
            drivers_count=len(drivers),
            resolution=resolution,
            errors=errors,
        )

    def _set_source_status(self, sources: WeeklyDataSources, platform: Platform, status: DataSourceStatus):
        updated = dict(sources.sources or {})
        updated[platform.value] = status.model_dump(mode="json")
        sources.sources = updated
        sources.is_complete = all(
            sources.source(p).status == SourceStatus.COMPLETE for p in Platform)
        sources.updated_at = datetime.utcnow()
        self.session.add(sources)
        self.session.commit()
        self.session.refresh(sources)

    def week_stats(self, week_id: str) -> WeekStats:
        sources = self.get_week(week_id)
        drivers = self.session.exec(
            select(RawPlatformRecord.driver_id)
            .where(RawPlatformRecord.week_id == sources.week_id)
            .where(RawPlatformRecord.driver_id != None)  # noqa: E711
            .distinct()
        ).all()
        statuses = [sources.source(p).status for p in Platform]
        complete = sum(1 for s in statuses if s == SourceStatus.COMPLETE)
        return WeekStats(
            week_id=sources.week_id,
            total_drivers=len(drivers),
            complete_sources=complete,
            pending_sources=len(statuses) - complete,
            total_sources=len(statuses),
            completion_percentage=round(complete * 100 / len(statuses), 2),
        )

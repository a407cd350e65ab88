import logging
import re
from typing import Iterable, List, NamedTuple, Optional, Sequence
from uuid import UUID

from pydantic import BaseModel
from sqlmodel import Session, select

from app.core.exceptions import NotFound, PayoutError, UnresolvedIdentity
from app.models.driver import Driver
from app.models.raw_platform_record import MatchMethod, Platform, RawPlatformRecord
from app.utils.weeks import parse_week

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^A-Z0-9]")
_SPACES = re.compile(r"\s+")
# Tokens más cortos se ignoran en la comparación por nombre ("da", "de", ...)
MIN_NAME_TOKEN = 3


class Match(NamedTuple):
    driver: Driver
    method: MatchMethod


class ResolutionReport(BaseModel):
    week_id: str
    resolved: int = 0
    already_resolved: int = 0
    low_confidence: int = 0
    unresolved: List[dict] = []
    errors: List[dict] = []


def normalize_key(value: Optional[str]) -> str:
    """Claves de integración en minúsculas y sin ningún espacio."""
    if not value:
        return ""
    return _SPACES.sub("", value.lower())


def normalize_name(value: Optional[str]) -> str:
    if not value:
        return ""
    return _SPACES.sub(" ", value.strip().lower())


def normalize_plate(value: Optional[str]) -> str:
    if not value:
        return ""
    return _NON_ALNUM.sub("", value.upper())


def integration_keys(driver: Driver, platform: Platform) -> List[str]:
    """Claves de integración del motorista para una plataforma, normalizadas."""
    if platform == Platform.RIDE_A:
        keys = [driver.ride_a_uuid]
    elif platform == Platform.RIDE_B:
        keys = [driver.ride_b_email]
    elif platform == Platform.FUEL_CARD:
        keys = [driver.fuel_card_number]
    else:
        keys = [driver.toll_road_key, driver.vehicle_plate]
    return [normalize_key(k) for k in keys if k]


def _first_token(value: str) -> str:
    for token in value.split():
        if len(token) >= MIN_NAME_TOKEN:
            return token
    return ""


def _fuzzy_name_match(label: str, name: str) -> bool:
    if not label or not name:
        return False
    label_token = _first_token(label)
    name_token = _first_token(name)
    # palabras completas: "ana" no coincide dentro de "mariana"
    return bool(
        (name_token and name_token in label.split())
        or (label_token and label_token in name.split())
    )


def resolve(record: RawPlatformRecord, drivers: Sequence[Driver]) -> Optional[Match]:
    """
    Busca el motorista de un registro de plataforma aplicando las reglas en orden:
    1. clave de integración exacta
    2. (solo toll-road) etiqueta contra la matrícula del vehículo
    3. nombre (baja confianza): primero el nombre completo, luego la primera palabra
    La primera regla que encuentra un motorista gana. No modifica el registro.
    """
    platform = Platform(record.platform)
    reference = normalize_key(record.reference_id)

    if reference:
        for driver in drivers:
            if reference in integration_keys(driver, platform):
                return Match(driver, MatchMethod.INTEGRATION_KEY)

    if platform == Platform.TOLL_ROAD:
        plate = normalize_plate(record.reference_label)
        if plate:
            for driver in drivers:
                if plate == normalize_plate(driver.vehicle_plate):
                    return Match(driver, MatchMethod.PLATE)

    label = normalize_name(record.reference_label)
    if label:
        for driver in drivers:
            if label == normalize_name(driver.name):
                return Match(driver, MatchMethod.FUZZY_NAME)
    for driver in drivers:
        if _fuzzy_name_match(label, normalize_name(driver.name)):
            return Match(driver, MatchMethod.FUZZY_NAME)

    return None


class IdentityResolverService:
    def __init__(self, session: Session):
        self.session = session

    def _drivers(self) -> List[Driver]:
        # Los motoristas inactivos también se resuelven
        return list(self.session.exec(select(Driver).order_by(Driver.id)).all())

    def resolve_records(self, records: Iterable[RawPlatformRecord], report: ResolutionReport) -> ResolutionReport:
        """
        Completa driver_id en los registros sin motorista. Cada registro se
        guarda por separado; un error en uno no detiene el resto.
        """
        drivers = self._drivers()
        for record in records:
            if record.driver_id:
                report.already_resolved += 1
                continue
            try:
                match = resolve(record, drivers)
                if match is None:
                    raise UnresolvedIdentity(
                        record.id, record.platform, record.reference_id, record.reference_label)
                record.driver_id = match.driver.id
                record.driver_name = match.driver.name
                record.match_method = match.method
                self.session.add(record)
                self.session.commit()
                report.resolved += 1
                if match.method == MatchMethod.FUZZY_NAME:
                    report.low_confidence += 1
                    logger.info(
                        "Coincidencia de baja confianza (%s): %s %r -> %s",
                        MatchMethod.FUZZY_NAME.value, record.platform,
                        record.reference_label, match.driver.id)
            except UnresolvedIdentity as e:
                logger.warning(e.message)
                report.unresolved.append({
                    "record_id": str(record.id),
                    "platform": record.platform,
                    "reference_id": record.reference_id,
                    "reference_label": record.reference_label,
                })
            except Exception as e:
                self.session.rollback()
                logger.exception(
                    "Error resolviendo el registro %s", record.id)
                report.errors.append(
                    {"record_id": str(record.id), "error": str(e)})
        return report

    def resolve_week(self, week_id: str) -> ResolutionReport:
        week = parse_week(week_id)
        records = self.session.exec(
            select(RawPlatformRecord)
            .where(RawPlatformRecord.week_id == week.week_id)
            .order_by(RawPlatformRecord.platform, RawPlatformRecord.reference_id)
        ).all()
        return self.resolve_records(records, ResolutionReport(week_id=week.week_id))

    def list_unmapped(self, week_id: str) -> List[RawPlatformRecord]:
        week = parse_week(week_id)
        return list(self.session.exec(
            select(RawPlatformRecord)
            .where(RawPlatformRecord.week_id == week.week_id)
            .where(RawPlatformRecord.driver_id == None)  # noqa: E711
            .order_by(RawPlatformRecord.platform, RawPlatformRecord.reference_id)
        ).all())

    def _get_record(self, record_id: UUID) -> RawPlatformRecord:
        record = self.session.get(RawPlatformRecord, record_id)
        if not record:
            raise NotFound(f"Platform record {record_id} not found")
        return record

    def manual_map(self, record_id: UUID, driver_id: str) -> RawPlatformRecord:
        """Asignación manual desde la lista de registros sin mapear."""
        record = self._get_record(record_id)
        driver = self.session.get(Driver, driver_id)
        if not driver:
            raise NotFound(f"Driver {driver_id} not found")
        if record.driver_id and record.driver_id != driver.id:
            raise PayoutError(
                f"Record {record_id} is already mapped to {record.driver_id}; clear it first")
        record.driver_id = driver.id
        record.driver_name = driver.name
        record.match_method = MatchMethod.MANUAL
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        logger.info("Registro %s asignado manualmente a %s",
                    record_id, driver.id)
        return record

    def clear_mapping(self, record_id: UUID) -> RawPlatformRecord:
        record = self._get_record(record_id)
        previous = record.driver_id
        record.driver_id = None
        record.driver_name = None
        record.match_method = None
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        logger.info("Registro %s desvinculado de %s", record_id, previous)
        return record

import re
from dataclasses import dataclass
from datetime import date, timedelta

from app.core.exceptions import InvalidWeek

WEEK_ID_PATTERN = re.compile(r"^(\d{4})-W(\d{2})$")


@dataclass(frozen=True)
class Week:
    week_id: str
    year: int
    number: int
    start: date  # lunes
    end: date    # domingo


def parse_week(week_id: str) -> Week:
    """
    Valida un identificador ISO de semana ("2025-W40") y devuelve sus límites.
    Lanza InvalidWeek si el formato o la semana no existen.
    """
    if not isinstance(week_id, str):
        raise InvalidWeek(week_id)
    match = WEEK_ID_PATTERN.match(week_id.strip())
    if not match:
        raise InvalidWeek(week_id)
    year, number = int(match.group(1)), int(match.group(2))
    try:
        start = date.fromisocalendar(year, number, 1)
    except ValueError:
        raise InvalidWeek(week_id)
    return Week(
        week_id=f"{year:04d}-W{number:02d}",
        year=year,
        number=number,
        start=start,
        end=start + timedelta(days=6),
    )

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """Convierte cualquier valor numérico (o None) a Decimal sin perder precisión."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(value: Any) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(base: Decimal, percent: Any) -> Decimal:
    return base * to_decimal(percent) / Decimal("100")


def to_cents(value: Any) -> int:
    return int((quantize(value) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def as_json(value: Optional[Decimal]) -> Optional[str]:
    # Los snapshots JSON guardan los montos como texto para no perder precisión
    return None if value is None else str(value)

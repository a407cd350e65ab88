"""
Errores de dominio del subsistema de pagos semanales.

Los servicios lanzan estas excepciones; los routers las traducen a
HTTPException. Los procesos por lotes (importación, resolución,
reconciliación) las capturan por elemento y las reportan sin abortar.
"""
from typing import Any, List, Optional, Tuple

from fastapi import HTTPException, status


class PayoutError(Exception):
    """Base de todos los errores de dominio."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(PayoutError):
    pass


class InvalidWeek(PayoutError):
    def __init__(self, week_id: Any):
        super().__init__(
            f"Invalid week identifier {week_id!r}, expected YYYY-Www")
        self.week_id = week_id


class UnresolvedIdentity(PayoutError):
    """Registro de plataforma sin motorista correspondiente (no fatal)."""

    def __init__(self, record_id: Any, platform: str, reference_id: str, reference_label: Optional[str] = None):
        super().__init__(
            f"No driver matches {platform} record {reference_id!r} ({reference_label or 'no label'})")
        self.record_id = record_id
        self.platform = platform
        self.reference_id = reference_id
        self.reference_label = reference_label


class AlreadyPaid(PayoutError):
    def __init__(self, driver_id: str, week_id: str, payment_id: Optional[str] = None):
        super().__init__(
            f"Driver {driver_id} already has a payment for week {week_id}")
        self.driver_id = driver_id
        self.week_id = week_id
        self.payment_id = payment_id


class FinancingClosed(PayoutError):
    """Operación que reabriría o modificaría un financiamiento completado."""

    def __init__(self, financing_id: Any, message: Optional[str] = None):
        super().__init__(
            message or f"Financing {financing_id} is completed and cannot be reopened")
        self.financing_id = financing_id


class LedgerDrift(PayoutError):
    """Estado derivado inconsistente con el ledger de pagos."""

    def __init__(self, entity: str, entity_id: Any, changes: dict, repaired: bool = True):
        super().__init__(
            f"{entity} {entity_id} drifted from the payment ledger: {sorted(changes)}")
        self.entity = entity
        self.entity_id = entity_id
        self.changes = changes
        self.repaired = repaired

    def as_dict(self) -> dict:
        return {
            "entity": self.entity,
            "entity_id": str(self.entity_id),
            "changes": self.changes,
            "repaired": self.repaired,
        }


class PartialBatchFailure(PayoutError):
    """Un lote terminó con errores en algunos elementos."""

    def __init__(self, operation: str, errors: List[Tuple[Any, str]]):
        super().__init__(
            f"{operation} finished with {len(errors)} failed item(s)")
        self.operation = operation
        self.errors = errors


def to_http_exception(exc: PayoutError) -> HTTPException:
    """Traduce un error de dominio al código HTTP que ve el cliente."""
    if isinstance(exc, InvalidWeek):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(exc, NotFound):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, (AlreadyPaid, FinancingClosed)):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=exc.message)

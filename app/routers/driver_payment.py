from fastapi import APIRouter, HTTPException, status
from fastapi.responses import PlainTextResponse
from typing import List, Optional
import logging

from app.core.db import SessionDep
from app.core.exceptions import PayoutError, to_http_exception
from app.models.driver_payment import (
    DriverPayment, DriverPaymentCreate, PaymentProof, PaymentCancel, PaymentStatus
)
from app.services.driver_payment_service import PaymentProcessor, PayWeekReport

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/", response_model=DriverPayment, status_code=status.HTTP_201_CREATED)
def pay_driver(data: DriverPaymentCreate, session: SessionDep):
    """
    Paga la semana de un motorista.

    - Recalcula el extracto en el momento del pago
    - Descuenta una parcela de cada financiamiento aplicable
    - Marca los bonos pendientes como pagados
    - Guarda el DriverPayment con el snapshot del cálculo

    Devuelve 409 si la semana ya tiene un pago activo.
    """
    try:
        return PaymentProcessor(session).pay(
            data.driver_id, data.week_id,
            discount_amount=data.discount_amount,
            notes=data.notes,
            proof=data.proof,
        )
    except PayoutError as e:
        raise to_http_exception(e)
    except Exception:
        logging.exception("Unexpected error paying %s for %s",
                          data.driver_id, data.week_id)
        raise HTTPException(
            status_code=500, detail="Unexpected error while processing the payment")


@router.get("/", response_model=List[DriverPayment])
def list_payments(
    session: SessionDep,
    week_id: Optional[str] = None,
    driver_id: Optional[str] = None,
    payment_status: Optional[PaymentStatus] = None,
):
    try:
        return PaymentProcessor(session).list_payments(week_id, driver_id, payment_status)
    except PayoutError as e:
        raise to_http_exception(e)


@router.post("/weeks/{week_id}", response_model=PayWeekReport)
def pay_week(week_id: str, session: SessionDep):
    """
    Paga a todos los motoristas activos y pendientes de la semana.
    Los errores de cada motorista se reportan sin detener el resto.
    """
    try:
        return PaymentProcessor(session).pay_week(week_id)
    except PayoutError as e:
        raise to_http_exception(e)


@router.get("/weeks/{week_id}/export", response_class=PlainTextResponse)
def export_week(week_id: str, session: SessionDep):
    """
    Exporta los pagos activos de la semana en CSV.
    """
    try:
        content = PaymentProcessor(session).export_week_csv(week_id)
    except PayoutError as e:
        raise to_http_exception(e)
    return PlainTextResponse(
        content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="payments-{week_id}.csv"'},
    )


@router.get("/{payment_id}", response_model=DriverPayment)
def get_payment(payment_id: str, session: SessionDep):
    try:
        return PaymentProcessor(session).get_payment(payment_id)
    except PayoutError as e:
        raise to_http_exception(e)


@router.put("/{payment_id}/proof", response_model=DriverPayment)
def attach_proof(payment_id: str, proof: PaymentProof, session: SessionDep):
    """
    Adjunta el comprobante de la transferencia.
    """
    try:
        return PaymentProcessor(session).attach_proof(payment_id, proof)
    except PayoutError as e:
        raise to_http_exception(e)


@router.post("/{payment_id}/cancel", response_model=DriverPayment)
def cancel_payment(payment_id: str, data: PaymentCancel, session: SessionDep):
    """
    Cancela un pago y deshace sus descuentos de financiamiento.
    Devuelve 409 si el pago completó un financiamiento.
    """
    try:
        return PaymentProcessor(session).cancel_payment(payment_id, data.reason)
    except PayoutError as e:
        raise to_http_exception(e)

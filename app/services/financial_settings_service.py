from sqlalchemy.orm import Session
from fastapi import HTTPException
from app.core.config import settings as app_settings
from app.models.driver import AdminFeeMode, DriverType
from app.models.financial_settings import (
    FinancialSettings, FinancialSettingsUpdate, FinancialSettingsCreate,
    FinancialConfig, FinancingOptions, EligibilityPolicy
)
from datetime import datetime
import logging

logger = logging.getLogger(__name__)


def default_financial_config() -> FinancialConfig:
    """Configuración por defecto tomada de las variables de entorno."""
    return FinancialConfig(
        vat_rate=app_settings.VAT_RATE,
        admin_fee_mode=AdminFeeMode(app_settings.ADMIN_FEE_MODE),
        admin_fee_percent=app_settings.ADMIN_FEE_PERCENT,
        admin_fee_fixed_default=app_settings.ADMIN_FEE_FIXED_DEFAULT,
        financing=FinancingOptions(
            dynamic_calculation=app_settings.FINANCING_DYNAMIC_CALCULATION,
            eligibility_policy=EligibilityPolicy(
                app_settings.FINANCING_ELIGIBILITY_POLICY),
            payment_decrement_dynamic=app_settings.FINANCING_PAYMENT_DECREMENT_DYNAMIC,
        ),
        commission_max_depth=app_settings.COMMISSION_MAX_DEPTH,
        commission_driver_types=(DriverType.AFFILIATE,),
    )


def get_financial_config(session: Session) -> FinancialConfig:
    """
    Devuelve la configuración financiera vigente.
    Si no existe ningún registro, usa los valores por defecto.
    """
    row = session.query(FinancialSettings).first()
    if not row:
        return default_financial_config()
    return row.to_config(app_settings.VAT_RATE)


def update_financial_settings_service(session: Session, settings_data: FinancialSettingsUpdate):
    """
    Actualiza la configuración financiera.
    Solo se modifican los campos enviados.
    """
    settings = session.query(FinancialSettings).first()

    if not settings:
        raise HTTPException(
            status_code=404,
            detail="Financial settings not found. Create them first."
        )

    update_data = settings_data.model_dump(exclude_unset=True)
    if "commission_driver_types" in update_data:
        update_data["commission_driver_types"] = [
            DriverType(t).value for t in update_data["commission_driver_types"]]

    for field, value in update_data.items():
        if hasattr(settings, field):
            setattr(settings, field, value)

    settings.updated_at = datetime.utcnow()

    try:
        session.add(settings)
        session.commit()
        session.refresh(settings)
        logger.info("Configuración financiera actualizada: %s",
                    sorted(update_data))
        return settings
    except Exception as e:
        session.rollback()
        raise HTTPException(
            status_code=500, detail=f"Error updating financial settings: {str(e)}")


def get_financial_settings_service(session: Session):
    """
    Obtiene la fila de configuración financiera.
    """
    settings = session.query(FinancialSettings).first()

    if not settings:
        raise HTTPException(
            status_code=404,
            detail="Financial settings not found"
        )

    return settings


def create_financial_settings_service(session: Session, settings_data: FinancialSettingsCreate):
    """
    Crea la configuración financiera inicial.
    """
    existing = session.query(FinancialSettings).first()
    if existing:
        raise HTTPException(
            status_code=400,
            detail="Financial settings already exist. Use the update endpoint."
        )

    settings = FinancialSettings(**settings_data.model_dump())

    try:
        session.add(settings)
        session.commit()
        session.refresh(settings)
        return settings
    except Exception as e:
        session.rollback()
        raise HTTPException(
            status_code=500, detail=f"Error creating financial settings: {str(e)}")

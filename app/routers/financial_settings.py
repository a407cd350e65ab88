from fastapi import APIRouter

from ..core.db import SessionDep
from app.models.financial_settings import (
    FinancialSettings, FinancialSettingsUpdate, FinancialSettingsCreate, FinancialConfig
)
from app.services.financial_settings_service import (
    update_financial_settings_service,
    get_financial_settings_service,
    create_financial_settings_service,
    get_financial_config
)

router = APIRouter(prefix="/financial-settings",
                   tags=["ADMIN: Financial Settings"])


@router.get("/", response_model=FinancialSettings, description="""
Obtiene la configuración financiera guardada.
""")
def get_financial_settings(session: SessionDep):
    """
    Obtiene la configuración financiera guardada.
    """
    return get_financial_settings_service(session)


@router.get("/effective", response_model=FinancialConfig, description="""
Configuración que usan los cálculos: la guardada o, si no existe, la de por defecto.
""")
def get_effective_config(session: SessionDep):
    return get_financial_config(session)


@router.post("/", response_model=FinancialSettings, description="""
Crea la configuración financiera inicial.

**Nota:** Solo se puede crear una configuración. Para modificar, usa el endpoint PUT.
""")
def create_financial_settings(session: SessionDep, settings_data: FinancialSettingsCreate):
    """
    Crea la configuración financiera inicial.
    """
    return create_financial_settings_service(session, settings_data)


@router.put("/", response_model=FinancialSettings, description="""
Actualiza la configuración financiera. Solo se modifican los campos enviados.
Los cambios afectan a las semanas calculadas después; los pagos ya hechos no cambian.
""")
def update_financial_settings(session: SessionDep, settings_data: FinancialSettingsUpdate):
    """
    Actualiza la configuración financiera.
    """
    return update_financial_settings_service(session, settings_data)

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import List
from decimal import Decimal
from functools import lru_cache


class Settings(BaseSettings):
    # Configuración de la aplicación
    APP_NAME: str = "Fleet Weekly Payouts API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Configuración de la base de datos
    DATABASE_URL: str = "sqlite:///./fleet_payouts.db"
    DATABASE_ECHO: bool = False

    # Configuración CORS
    CORS_ORIGINS: List[str] = ["*"]
    CORS_CREDENTIALS: bool = True
    CORS_METHODS: List[str] = ["*"]
    CORS_HEADERS: List[str] = ["*"]

    # IVA fijo aplicado sobre los ganhos de las plataformas de viaje
    VAT_RATE: Decimal = Decimal("0.06")
    CURRENCY: str = "EUR"

    # Valores por defecto de la configuración financiera (si no existe fila)
    ADMIN_FEE_MODE: str = "percent"
    ADMIN_FEE_PERCENT: Decimal = Decimal("7")
    ADMIN_FEE_FIXED_DEFAULT: Decimal = Decimal("25")
    FINANCING_DYNAMIC_CALCULATION: bool = True
    FINANCING_ELIGIBILITY_POLICY: str = "startDateToWeekEnd"
    FINANCING_PAYMENT_DECREMENT_DYNAMIC: bool = True
    COMMISSION_MAX_DEPTH: int = 3

    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()

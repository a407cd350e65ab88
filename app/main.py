from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from .core.db import create_all_tables
from .core.config import settings
from .routers import (
    weeks, statements, driver_payment, financing, commission_rules,
    financial_settings, drivers, reconciliation
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Iniciando la aplicación...")
    create_all_tables()
    yield
    logger.info("Cerrando la aplicación...")

fastapi_app = FastAPI(
    lifespan=lifespan,
    title=settings.APP_NAME,
    description="Importación semanal de plataformas, extractos y pagos a motoristas",
    version=settings.APP_VERSION
)

# Configuración CORS
fastapi_app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_CREDENTIALS,
    allow_methods=settings.CORS_METHODS,
    allow_headers=settings.CORS_HEADERS,
)

# Agregar routers
fastapi_app.include_router(drivers.router)
fastapi_app.include_router(weeks.router)
fastapi_app.include_router(statements.router)
fastapi_app.include_router(financing.router)
fastapi_app.include_router(commission_rules.router)
fastapi_app.include_router(driver_payment.router)
fastapi_app.include_router(financial_settings.router)
fastapi_app.include_router(reconciliation.router)

app = fastapi_app

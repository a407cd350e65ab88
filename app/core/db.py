from typing import Annotated
from fastapi import Depends
from sqlmodel import Session, create_engine, SQLModel
from .config import settings

# ✅ IMPORTAR TODOS LOS MODELOS
from app.models import (
    Driver, RawPlatformRecord, WeeklyDataSources, DriverWeeklyRecord,
    Financing, CommissionRule, ReferralBonus, DriverPayment, FinancialSettings
)

connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith(
    "sqlite") else {}

engine = create_engine(settings.DATABASE_URL,
                       echo=settings.DATABASE_ECHO, connect_args=connect_args)


def create_all_tables():
    """Crea todas las tablas en la base de datos"""
    SQLModel.metadata.create_all(engine)


def get_session():
    with Session(engine) as session:
        yield session


SessionDep = Annotated[Session, Depends(get_session)]

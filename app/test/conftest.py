from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from app.main import fastapi_app as app
from app.core.db import get_session
from app.models.driver import Driver, DriverType
from app.models.financing import Financing, FinancingStatus
from app.models.raw_platform_record import RawPlatformRecord, MatchMethod

WEEK = "2025-W40"  # 2025-09-29 .. 2025-10-05


@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(session: Session):
    def get_session_override():
        return session
    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def make_driver(session):
    def _make(driver_id, name, **fields):
        fields.setdefault("type", DriverType.AFFILIATE)
        driver = Driver(id=driver_id, name=name, **fields)
        session.add(driver)
        session.commit()
        session.refresh(driver)
        return driver
    return _make


@pytest.fixture
def add_record(session):
    """Registro ya resuelto (o sin resolver si driver_id es None)."""
    def _add(driver_id, platform, value, week_id=WEEK, trips=0, reference_id=None, label=None):
        record = RawPlatformRecord(
            week_id=week_id,
            platform=platform,
            reference_id=reference_id or f"{platform.value}-{driver_id}",
            reference_label=label,
            total_value=Decimal(str(value)),
            total_trips=trips,
            driver_id=driver_id,
            match_method=MatchMethod.MANUAL if driver_id else None,
        )
        session.add(record)
        session.commit()
        session.refresh(record)
        return record
    return _add


@pytest.fixture
def make_financing(session):
    def _make(driver_id, amount="0", weeks=None, weekly_interest="0", start_date=date(2025, 9, 1), **fields):
        financing = Financing(
            driver_id=driver_id,
            amount=Decimal(amount),
            weeks=weeks,
            weekly_interest=Decimal(weekly_interest),
            start_date=start_date,
            remaining_weeks=weeks,
            status=FinancingStatus.ACTIVE,
            **fields,
        )
        session.add(financing)
        session.commit()
        session.refresh(financing)
        return financing
    return _make

from decimal import Decimal

import pytest

from app.models.commission_rule import CommissionRuleCreate, CommissionRuleUpdate, CommissionType
from app.models.driver import DriverStatus, DriverType
from app.models.financial_settings import FinancialConfig
from app.models.raw_platform_record import Platform
from app.services.commission_engine import CommissionEngine
from conftest import WEEK


@pytest.fixture
def engine_for(session):
    def _engine(**config):
        return CommissionEngine(session, FinancialConfig(**config))
    return _engine


def _rule(engine, type, level=1, **fields):
    return engine.create_rule(CommissionRuleCreate(type=type, level=level, **fields))


def test_base_commission_respects_minimum_earnings(engine_for, make_driver, add_record):
    engine = engine_for()
    make_driver("d1", "Ana Costa")
    add_record("d1", Platform.RIDE_A, "300")
    add_record("d1", Platform.RIDE_B, "100")
    _rule(engine, CommissionType.BASE, percentage=Decimal("2"), min_earnings=Decimal("350"))

    result = engine.compute_commission("d1", WEEK)
    assert result.base_commission == Decimal("8.00")
    assert result.breakdown[0].base == Decimal("400.00")

    _rule(engine, CommissionType.BASE, level=2, percentage=Decimal("5"), min_earnings=Decimal("1000"))
    make_driver("d2", "Bruno Silva", affiliate_level=2)
    add_record("d2", Platform.RIDE_A, "400")
    low = engine.compute_commission("d2", WEEK)
    assert low.base_commission == Decimal("0")
    assert low.breakdown[0].eligible is False
    assert "below minimum" in low.breakdown[0].reason


def test_recruitment_commission_walks_the_referral_tree(engine_for, make_driver, add_record):
    engine = engine_for(commission_max_depth=2)
    make_driver("root", "Rita Root")
    make_driver("c1", "Carlos Um", referred_by_id="root")
    make_driver("c2", "Clara Dois", referred_by_id="root", status=DriverStatus.INACTIVE)
    make_driver("g1", "Gil Neto", referred_by_id="c1")
    make_driver("gg1", "Gui Bisneto", referred_by_id="g1")
    for driver_id in ["c1", "c2", "g1", "gg1"]:
        add_record(driver_id, Platform.RIDE_A, "100")
    _rule(engine, CommissionType.RECRUITMENT, percentage=Decimal("1"), min_recruitments=1)

    result = engine.compute_commission("root", WEEK)
    lines = {l.referred_driver_id: l for l in result.breakdown}
    # c2 inactivo, gg1 fuera de la profundidad configurada
    assert set(lines) == {"c1", "g1"}
    assert lines["g1"].depth == 2
    assert result.recruitment_commission == Decimal("2.00")


def test_minimum_recruitments_is_reported(engine_for, make_driver, add_record):
    engine = engine_for()
    make_driver("root", "Rita Root")
    make_driver("c1", "Carlos Um", referred_by_id="root")
    add_record("c1", Platform.RIDE_A, "100")
    _rule(engine, CommissionType.RECRUITMENT, percentage=Decimal("1"), min_recruitments=3)

    result = engine.compute_commission("root", WEEK)
    assert result.recruitment_commission == Decimal("0")
    assert len(result.breakdown) == 1
    assert result.breakdown[0].eligible is False
    assert "Requires 3" in result.breakdown[0].reason


def test_fixed_value_when_no_percentage(engine_for, make_driver, add_record):
    engine = engine_for()
    make_driver("d1", "Ana Costa")
    add_record("d1", Platform.RIDE_A, "50")
    _rule(engine, CommissionType.BASE, fixed_value=Decimal("15"))
    assert engine.compute_commission("d1", WEEK).base_commission == Decimal("15.00")


def test_only_configured_driver_types_earn_commission(engine_for, make_driver, add_record):
    engine = engine_for()
    make_driver("r1", "Rui Renter", type=DriverType.RENTER)
    add_record("r1", Platform.RIDE_A, "500")
    _rule(engine, CommissionType.BASE, percentage=Decimal("2"))
    result = engine.compute_commission("r1", WEEK)
    assert result.total == Decimal("0")
    assert result.breakdown == []


def test_update_supersedes_instead_of_mutating(session, engine_for, make_driver, add_record):
    engine = engine_for()
    original = _rule(engine, CommissionType.BASE, percentage=Decimal("2"))
    replacement = engine.update_rule(original.id, CommissionRuleUpdate(percentage=Decimal("3")))

    session.refresh(original)
    assert original.active is False
    assert original.percentage == Decimal("2")
    assert replacement.supersedes_id == original.id
    assert replacement.active is True
    assert [r.id for r in engine.list_rules(active_only=True)] == [replacement.id]


def test_commission_rule_api(client, make_driver, add_record):
    make_driver("d1", "Ana Costa")
    add_record("d1", Platform.RIDE_A, "200")
    rule = client.post("/commission-rules/", json={
        "type": "base", "level": 1, "percentage": "2.5", "description": "Bronze"}).json()

    computed = client.get(f"/commission-rules/compute/{WEEK}/d1").json()
    assert computed["base_commission"] == "5.00"

    toggled = client.patch(f"/commission-rules/{rule['id']}/active", json={"active": False})
    assert toggled.json()["active"] is False
    computed = client.get(f"/commission-rules/compute/{WEEK}/d1").json()
    assert computed["breakdown"] == []

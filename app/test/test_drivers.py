from decimal import Decimal

from app.models.raw_platform_record import Platform
from conftest import WEEK


def test_upsert_driver_creates_then_updates(client):
    payload = {"id": "d1", "name": "Ana Costa", "type": "renter", "rental_fee": "180.00",
               "ride_a_uuid": "AAA-1", "vehicle_plate": "AA-12-BB"}
    created = client.post("/drivers/", json=payload)
    assert created.status_code == 200
    assert created.json()["type"] == "renter"

    payload["name"] = "Ana M. Costa"
    updated = client.post("/drivers/", json=payload).json()
    assert updated["name"] == "Ana M. Costa"
    assert len(client.get("/drivers/").json()) == 1


def test_referrer_must_exist(client):
    response = client.post("/drivers/", json={"id": "d2", "name": "Bruno", "referred_by_id": "ghost"})
    assert response.status_code == 404
    response = client.post("/drivers/", json={"id": "d2", "name": "Bruno", "referred_by_id": "d2"})
    assert response.status_code == 400


def test_exemption_applies_to_the_statement(client, make_driver, add_record):
    make_driver("d1", "Ana Costa")
    add_record("d1", Platform.RIDE_A, "100")

    response = client.put("/drivers/d1/admin-fee-exemption", json={"weeks": 2, "reason": "onboarding"})
    assert response.json()["admin_fee_exemption_weeks"] == 2
    statement = client.get(f"/statements/{WEEK}/d1").json()
    assert statement["admin_fee_exempt"] is True
    assert statement["despesas_base"] == "0.00"

    cleared = client.put("/drivers/d1/admin-fee-exemption", json={"weeks": 0}).json()
    assert cleared["admin_fee_exemption_reason"] is None


def test_referral_bonus_shows_up_as_pending(client, make_driver, add_record):
    make_driver("d1", "Ana Costa")
    make_driver("d2", "Bruno Silva", referred_by_id="d1")
    add_record("d1", Platform.RIDE_A, "100")

    response = client.post("/drivers/bonuses", json={
        "driver_id": "d1", "referred_driver_id": "d2", "amount": "25", "description": "Indicação"})
    assert response.status_code == 201

    statement = client.get(f"/statements/{WEEK}/d1").json()
    assert Decimal(statement["bonus_amount"]) == Decimal("25")
    assert statement["bonus_ids"] == [response.json()["id"]]
    assert client.get("/drivers/d1/bonuses", params={"bonus_status": "pending"}).json()[0]["amount"] == "25.00"


def test_financial_settings_drive_the_calculation(client, make_driver, add_record):
    make_driver("d1", "Ana Costa")
    add_record("d1", Platform.RIDE_A, "100")

    assert client.get("/financial-settings/").status_code == 404
    assert client.get("/financial-settings/effective").json()["admin_fee_percent"] == "7"

    created = client.post("/financial-settings/", json={"admin_fee_percent": "10"})
    assert created.status_code == 200
    assert client.post("/financial-settings/", json={}).status_code == 400

    statement = client.get(f"/statements/{WEEK}/d1").json()
    assert statement["despesas_base"] == "9.40"

    client.put("/financial-settings/", json={"admin_fee_mode": "fixed", "admin_fee_fixed_default": "30"})
    statement = client.get(f"/statements/{WEEK}/d1").json()
    assert statement["despesas_base"] == "30.00"

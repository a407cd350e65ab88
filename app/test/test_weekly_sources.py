from app.models.raw_platform_record import Platform


def _import(client, platform, rows, week="2025-W40"):
    return client.post(f"/weeks/{week}/imports/{platform}", json={"origin": "manual", "rows": rows})


def test_create_week_is_idempotent(client):
    first = client.post("/weeks/", json={"week_id": "2025-W40", "notes": "primera"})
    second = client.post("/weeks/", json={"week_id": "2025-W40"})
    assert first.status_code == second.status_code == 201
    assert second.json()["notes"] == "primera"
    assert first.json()["week_start"] == "2025-09-29"
    assert first.json()["is_complete"] is False
    assert len(client.get("/weeks/").json()) == 1


def test_invalid_week_is_rejected_at_the_boundary(client):
    assert client.post("/weeks/", json={"week_id": "2025-40"}).status_code == 422
    assert client.get("/statements/2025-W99").status_code == 422


def test_reimport_replaces_previous_rows(client, make_driver):
    make_driver("d1", "Ana Costa", ride_a_uuid="AAA")
    _import(client, "ride-a", [{"reference_id": "AAA", "total_value": "100", "total_trips": 10}])
    response = _import(client, "ride-a", [{"reference_id": "AAA", "total_value": "120", "total_trips": 12}])

    assert response.status_code == 200
    body = response.json()
    assert body["records_count"] == 1
    assert body["drivers_count"] == 1
    assert body["status"] == "complete"

    statement = client.get("/statements/2025-W40/d1").json()
    assert statement["ride_a_total"] == "120.00"
    assert statement["total_trips"] == 12


def test_week_complete_only_when_every_platform_complete(client, make_driver):
    make_driver("d1", "Ana Costa", ride_a_uuid="AAA", ride_b_email="ana@x.pt",
                fuel_card_number="F1", vehicle_plate="AA-12-BB")
    _import(client, "ride-a", [{"reference_id": "AAA", "total_value": "100"}])
    _import(client, "ride-b", [{"reference_id": "ana@x.pt", "total_value": "50"}])
    _import(client, "fuel-card", [{"reference_id": "F1", "total_value": "30"}])

    week = client.get("/weeks/2025-W40").json()
    assert week["is_complete"] is False
    assert week["sources"][Platform.TOLL_ROAD.value]["status"] == "pending"

    _import(client, "toll-road", [{"reference_id": "x", "reference_label": "AA12BB", "total_value": "5"}])
    week = client.get("/weeks/2025-W40").json()
    assert week["is_complete"] is True

    stats = client.get("/weeks/2025-W40/stats").json()
    assert stats["complete_sources"] == 4
    assert stats["completion_percentage"] == 100.0
    assert stats["total_drivers"] == 1


def test_bad_row_marks_source_partial_and_keeps_the_rest(client, make_driver):
    make_driver("d1", "Ana Costa", ride_a_uuid="AAA")
    response = _import(client, "ride-a", [
        {"reference_id": "   ", "total_value": "10"},
        {"reference_id": "AAA", "total_value": "100"},
    ])
    body = response.json()
    assert body["status"] == "partial"
    assert body["records_count"] == 1
    assert body["errors"][0]["row"] == 0

    source = client.get("/weeks/2025-W40").json()["sources"]["ride-a"]
    assert source["status"] == "partial"
    assert source["last_error"] == "Empty reference id"


def test_unresolved_rows_are_reported_not_fatal(client, make_driver):
    make_driver("d1", "Ana Costa", vehicle_plate="AA-12-BB")
    response = _import(client, "toll-road", [
        {"reference_id": "GP798SH", "reference_label": "GP798SH", "total_value": "7.30"},
        {"reference_id": "OBU-1", "reference_label": "AA-12-BB", "total_value": "2.10"},
    ])
    body = response.json()
    assert body["status"] == "complete"
    assert body["resolution"]["resolved"] == 1
    assert body["resolution"]["unresolved"][0]["reference_id"] == "GP798SH"
    assert len(client.get("/weeks/2025-W40/unmapped").json()) == 1

from decimal import Decimal

from app.models.driver import Driver
from app.models.raw_platform_record import MatchMethod, Platform, RawPlatformRecord
from app.services.identity_resolver import (
    IdentityResolverService, normalize_plate, resolve
)
from conftest import WEEK


def _record(platform, reference_id, label=None):
    return RawPlatformRecord(
        week_id=WEEK, platform=platform, reference_id=reference_id,
        reference_label=label, total_value=Decimal("10"))


def _drivers():
    return [
        Driver(id="d1", name="Ana Costa", ride_a_uuid="AAA-111",
               ride_b_email="ana@example.com", fuel_card_number="7000 1234",
               vehicle_plate="AA-12-BB"),
        Driver(id="d2", name="Bruno Silva", toll_road_key="VV-998"),
    ]


def test_integration_key_is_normalized():
    match = resolve(_record(Platform.RIDE_B, "  ANA@Example.com "), _drivers())
    assert match.driver.id == "d1"
    assert match.method == MatchMethod.INTEGRATION_KEY


def test_integration_key_per_platform():
    # la tarjeta de combustible no sirve como clave de ride-a
    assert resolve(_record(Platform.FUEL_CARD, "7000 1234"), _drivers()).driver.id == "d1"
    assert resolve(_record(Platform.RIDE_A, "7000 1234"), _drivers()) is None


def test_toll_road_matches_plate_label():
    match = resolve(_record(Platform.TOLL_ROAD, "OBU-77", label="aa12bb"), _drivers())
    assert match.driver.id == "d1"
    assert match.method == MatchMethod.PLATE


def test_toll_road_key_wins_over_plate():
    match = resolve(_record(Platform.TOLL_ROAD, "vv-998", label="AA-12-BB"), _drivers())
    assert match.driver.id == "d2"
    assert match.method == MatchMethod.INTEGRATION_KEY


def test_fuzzy_name_is_last_resort():
    match = resolve(_record(Platform.RIDE_A, "unknown-uuid", label="Bruno S."), _drivers())
    assert match.driver.id == "d2"
    assert match.method == MatchMethod.FUZZY_NAME


def test_short_tokens_do_not_match_names():
    assert resolve(_record(Platform.RIDE_A, "x", label="da"), _drivers()) is None


def test_name_match_uses_whole_words_and_prefers_full_name():
    drivers = [Driver(id="a", name="Ana Pereira"), Driver(id="m", name="Mariana Silva")]

    exact = resolve(_record(Platform.RIDE_B, "x@example.com", label="Mariana Silva"), drivers)
    assert exact.driver.id == "m"
    assert exact.method == MatchMethod.FUZZY_NAME

    # "ana" no coincide dentro de "mariana"
    partial = resolve(_record(Platform.RIDE_B, "x@example.com", label="Mariana S."), drivers)
    assert partial.driver.id == "m"
    assert resolve(_record(Platform.RIDE_B, "x@example.com", label="Marianas"), drivers) is None


def test_card_number_ignores_spaces():
    drivers = [Driver(id="d9", name="Dora Lima", fuel_card_number="7077 1234 5678")]
    match = resolve(_record(Platform.FUEL_CARD, "707712345678"), drivers)
    assert match.driver.id == "d9"
    assert match.method == MatchMethod.INTEGRATION_KEY


def test_normalize_plate():
    assert normalize_plate(" gp-79 8sh ") == "GP798SH"


def test_unmapped_toll_record_does_not_block_others(session, make_driver, add_record):
    make_driver("d1", "Ana Costa", vehicle_plate="AA-12-BB")
    make_driver("d2", "Bruno Silva", ride_a_uuid="BBB-222")
    add_record(None, Platform.TOLL_ROAD, "12.50", reference_id="GP798SH", label="GP798SH")
    add_record(None, Platform.TOLL_ROAD, "4.10", reference_id="OBU-1", label="AA 12 BB")
    add_record(None, Platform.RIDE_A, "300", reference_id="bbb-222")

    service = IdentityResolverService(session)
    report = service.resolve_week(WEEK)

    assert report.resolved == 2
    assert [u["reference_label"] for u in report.unresolved] == ["GP798SH"]
    unmapped = service.list_unmapped(WEEK)
    assert len(unmapped) == 1
    assert unmapped[0].reference_label == "GP798SH"
    assert unmapped[0].driver_id is None


def test_resolution_never_overwrites_existing_assignment(session, make_driver, add_record):
    make_driver("d1", "Ana Costa", ride_a_uuid="AAA-111")
    make_driver("d2", "Bruno Silva")
    # asignado manualmente a d2 aunque la clave sea de d1
    record = add_record("d2", Platform.RIDE_A, "50", reference_id="AAA-111")

    service = IdentityResolverService(session)
    first = service.resolve_week(WEEK)
    second = service.resolve_week(WEEK)

    session.refresh(record)
    assert record.driver_id == "d2"
    assert first.already_resolved == second.already_resolved == 1
    assert first.resolved == second.resolved == 0


def test_clear_then_resolve_reassigns(session, make_driver, add_record):
    make_driver("d1", "Ana Costa", ride_a_uuid="AAA-111")
    make_driver("d2", "Bruno Silva")
    record = add_record("d2", Platform.RIDE_A, "50", reference_id="AAA-111")

    service = IdentityResolverService(session)
    service.clear_mapping(record.id)
    service.resolve_week(WEEK)

    session.refresh(record)
    assert record.driver_id == "d1"
    assert record.match_method == MatchMethod.INTEGRATION_KEY


def test_manual_mapping_api(client, make_driver, add_record):
    make_driver("d1", "Ana Costa")
    record = add_record(None, Platform.TOLL_ROAD, "9", reference_id="GP798SH", label="GP798SH")

    response = client.get(f"/weeks/{WEEK}/unmapped")
    assert response.status_code == 200
    assert [r["id"] for r in response.json()] == [str(record.id)]

    response = client.put(f"/weeks/records/{record.id}/driver", json={"driver_id": "d1"})
    assert response.status_code == 200
    assert response.json()["match_method"] == "manual"
    assert client.get(f"/weeks/{WEEK}/unmapped").json() == []

    response = client.put(f"/weeks/records/{record.id}/driver", json={"driver_id": "missing"})
    assert response.status_code == 404

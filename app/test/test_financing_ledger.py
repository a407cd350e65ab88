from datetime import date

import pytest

from app.core.exceptions import FinancingClosed, PayoutError
from app.models.financial_settings import FinancingOptions
from app.models.financing import FinancingStatus
from app.services.financing_ledger import FinancingLedger
from app.utils.weeks import parse_week


@pytest.fixture
def ledger(session):
    return FinancingLedger(session)


def test_apply_payment_is_idempotent(session, ledger, make_driver, make_financing):
    make_driver("d1", "Ana Costa")
    financing = make_financing("d1", amount="300", weeks=3)

    first = ledger.apply_payment(financing.id, "pay-1")
    session.commit()
    second = ledger.apply_payment(financing.id, "pay-1")
    session.commit()

    session.refresh(financing)
    assert first.installment_paid == 1
    assert first.remaining_installments == 2
    assert second.already_processed is True
    assert second.installment_paid == 0
    assert financing.remaining_weeks == 2
    assert financing.processed_records == ["pay-1"]


def test_remaining_weeks_monotonic_and_completes_once(session, ledger, make_driver, make_financing):
    make_driver("d1", "Ana Costa")
    financing = make_financing("d1", amount="300", weeks=3)

    remaining, paid = [], []
    for payment_id in ["p1", "p2", "p3", "p4"]:
        result = ledger.apply_payment(financing.id, payment_id)
        session.commit()
        remaining.append(result.remaining_installments)
        paid.append(result.installment_paid)

    session.refresh(financing)
    assert remaining == [2, 1, 0, 0]
    # cada pago salda una sola parcela
    assert paid == [1, 1, 1, 0]
    assert financing.status == FinancingStatus.COMPLETED
    assert financing.end_date is not None
    # completado es terminal: el cuarto pago no se registra
    assert financing.processed_records == ["p1", "p2", "p3"]


def test_unlimited_financing_never_completes_by_payment(session, ledger, make_driver, make_financing):
    make_driver("d1", "Ana Costa")
    financing = make_financing("d1", weekly_interest="3")
    for payment_id in ["p1", "p2", "p3"]:
        result = ledger.apply_payment(financing.id, payment_id)
        session.commit()
        assert result.completed is False
        assert result.remaining_installments is None
        assert result.installment_paid == 0

    session.refresh(financing)
    assert financing.status == FinancingStatus.ACTIVE
    assert len(financing.processed_records) == 3

    completed = ledger.complete_financing(financing.id)
    assert completed.status == FinancingStatus.COMPLETED
    with pytest.raises(FinancingClosed):
        ledger.complete_financing(financing.id)


def test_fixed_term_financing_cannot_be_closed_manually(ledger, make_driver, make_financing):
    make_driver("d1", "Ana Costa")
    financing = make_financing("d1", amount="100", weeks=2)
    with pytest.raises(PayoutError):
        ledger.complete_financing(financing.id)


def test_revert_payment_restores_installment(session, ledger, make_driver, make_financing):
    make_driver("d1", "Ana Costa")
    financing = make_financing("d1", amount="300", weeks=3)
    ledger.apply_payment(financing.id, "p1")
    ledger.apply_payment(financing.id, "p2")
    session.commit()

    ledger.revert_payment(financing.id, "p1")
    session.commit()
    session.refresh(financing)
    assert financing.processed_records == ["p2"]
    assert financing.remaining_weeks == 2


def test_revert_on_completed_financing_is_rejected(session, ledger, make_driver, make_financing):
    make_driver("d1", "Ana Costa")
    financing = make_financing("d1", amount="100", weeks=1)
    ledger.apply_payment(financing.id, "p1")
    session.commit()
    with pytest.raises(FinancingClosed):
        ledger.revert_payment(financing.id, "p1")


def test_payable_for_follows_decrement_policy(ledger, make_driver, make_financing):
    make_driver("d1", "Ana Costa")
    make_financing("d1", amount="100", weeks=4, start_date=date(2025, 9, 1))
    make_financing("d1", amount="100", weeks=4, start_date=date(2025, 10, 20))
    week = parse_week("2025-W40")

    assert len(ledger.payable_for("d1", week, FinancingOptions())) == 1
    assert len(ledger.payable_for("d1", week, FinancingOptions(payment_decrement_dynamic=False))) == 2


def test_financing_api(client, make_driver):
    make_driver("d1", "Ana Costa")
    response = client.post("/financing/", json={
        "driver_id": "d1", "type": "loan", "amount": "500", "weeks": 10,
        "weekly_interest": "2", "start_date": "2025-09-15",
    })
    assert response.status_code == 201
    body = response.json()
    assert body["remaining_weeks"] == 10
    assert body["status"] == "active"

    assert client.get(f"/financing/{body['id']}").status_code == 200
    assert client.post(f"/financing/{body['id']}/complete").status_code == 400
    missing = client.post("/financing/", json={
        "driver_id": "nobody", "amount": "1", "start_date": "2025-09-15"})
    assert missing.status_code == 404

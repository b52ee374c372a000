"""HTTP layer on the in-memory services."""
import pytest

from chantier_billing.core.config import settings
from chantier_billing.core.exceptions import ConnectivityBlockedError

API = settings.API_V1_STR


def _initialize(test_client, client_id="client-1", **overrides):
    body = {"project_id": "project-1", "total_amount": 1000, "months": 9, "deposit_amount": 100}
    body.update(overrides)
    return test_client.post(f"{API}/clients/{client_id}/accounting", json=body)


def test_initialize_accounting(test_client):
    response = _initialize(test_client)

    assert response.status_code == 201
    data = response.json()
    assert data["client_id"] == "client-1"
    assert data["created_by"] == "admin-1"
    assert len(data["installments"]) == 10
    assert data["installments"][0]["due_date"] == "2024-01-15"
    assert data["version"] == 1


def test_initialize_accounting_twice_conflicts(test_client):
    _initialize(test_client)

    response = _initialize(test_client)

    assert response.status_code == 409


def test_initialize_accounting_invalid_terms(test_client):
    response = _initialize(test_client, months=0)

    assert response.status_code == 400


def test_get_schedule(test_client):
    assert test_client.get(f"{API}/clients/client-1/schedule").status_code == 404

    _initialize(test_client)
    response = test_client.get(f"{API}/clients/client-1/schedule")

    assert response.status_code == 200
    assert response.json()["total_amount"] == 1000


def test_record_payment(test_client):
    _initialize(test_client)

    response = test_client.post(
        f"{API}/clients/client-1/payments",
        json={"amount": 150, "method": "cash", "reference": "R-1"},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["payment"]["amount"] == 150
    assert data["payment"]["received_by"] == "admin-1"
    assert [a["installment_number"] for a in data["installment_allocations"]] == [0, 1]
    assert data["invoice_allocations"][0]["settled"] is True
    assert data["unallocated_amount"] == 0

    history = test_client.get(f"{API}/clients/client-1/payments").json()
    assert [p["amount"] for p in history] == [150]


def test_record_payment_without_schedule(test_client):
    response = test_client.post(
        f"{API}/clients/nobody/payments", json={"amount": 150, "method": "cash"}
    )

    assert response.status_code == 404


def test_record_payment_invalid_amount(test_client):
    _initialize(test_client)

    response = test_client.post(
        f"{API}/clients/client-1/payments", json={"amount": 0, "method": "cash"}
    )

    assert response.status_code == 400


def test_record_payment_rejected_overpayment(test_client, monkeypatch):
    monkeypatch.setattr(settings, "OVERPAYMENT_POLICY", "reject")
    _initialize(test_client)

    response = test_client.post(
        f"{API}/clients/client-1/payments", json={"amount": 5000, "method": "cash"}
    )

    assert response.status_code == 409


def test_dashboard_and_consistency(test_client):
    _initialize(test_client)
    test_client.post(f"{API}/clients/client-1/payments", json={"amount": 150, "method": "cash"})

    dashboard = test_client.get(f"{API}/clients/client-1/dashboard").json()
    assert dashboard["total_paid"] == 150
    assert dashboard["next_payment"]["installment_number"] == 1
    assert dashboard["total_invoices"] == 1
    # Next installment is a month away, 16 days before month end
    assert dashboard["show_reminder"] is False

    report = test_client.get(f"{API}/clients/client-1/consistency").json()
    assert report["consistent"] is True
    assert report["ledger_total"] == 150


def test_invoice_lifecycle(test_client):
    created = test_client.post(f"{API}/invoices", json={
        "client_id": "client-1",
        "total_amount": 800,
        "due_date": "2024-02-01",
        "items": [
            {"description": "Ciment", "quantity": 10, "unit_price": 50, "total_price": 500},
            {"description": "Pose", "quantity": 1, "unit_price": 300, "total_price": 300},
        ],
    })
    assert created.status_code == 201
    invoice = created.json()
    assert invoice["invoice_number"] == "INV-2024-001"
    assert invoice["status"] == "draft"

    sent = test_client.post(f"{API}/invoices/{invoice['id']}/send").json()
    assert sent["status"] == "sent"
    assert sent["sent_to_client"] is True

    paid = test_client.post(
        f"{API}/invoices/{invoice['id']}/payments", json={"amount": 300, "method": "check"}
    ).json()
    assert paid["payment_status"] == "partial"
    assert paid["remaining_amount"] == 500

    too_much = test_client.post(
        f"{API}/invoices/{invoice['id']}/payments", json={"amount": 501, "method": "check"}
    )
    assert too_much.status_code == 400

    cancelled = test_client.delete(f"{API}/invoices/{invoice['id']}").json()
    assert cancelled["status"] == "cancelled"

    listed = test_client.get(f"{API}/clients/client-1/invoices").json()
    assert [i["status"] for i in listed] == ["cancelled"]

    closed = test_client.post(
        f"{API}/invoices/{invoice['id']}/payments", json={"amount": 1, "method": "check"}
    )
    assert closed.status_code == 409


def test_invoice_not_found(test_client):
    assert test_client.post(f"{API}/invoices/missing/send").status_code == 404
    assert test_client.delete(f"{API}/invoices/missing").status_code == 404


def test_reminder_check(test_client, notifier):
    _initialize(test_client)

    response = test_client.post(f"{API}/reminders/check", json={"today": "2024-02-05"})

    assert response.status_code == 200
    kinds = {(r["installment_number"], r["kind"]) for r in response.json()}
    assert kinds == {(0, "overdue"), (1, "upcoming")}
    assert notifier.send_payment_reminder.await_count == 2


def test_reminder_check_defaults_to_today(test_client):
    _initialize(test_client)

    response = test_client.post(f"{API}/reminders/check")

    assert [r["kind"] for r in response.json()] == ["due_today"]


def test_manual_reminder(test_client, notifier):
    response = test_client.post(
        f"{API}/clients/client-1/reminders", json={"amount": 700}
    )

    assert response.json() == {
        "client_id": "client-1", "amount": 700, "kind": "overdue", "delivered": True
    }
    notifier.send_payment_reminder.assert_awaited_once()


def test_stats_and_payments(test_client):
    _initialize(test_client, "client-1")
    _initialize(test_client, "client-2", total_amount=2000, deposit_amount=400)
    test_client.post(f"{API}/clients/client-1/payments", json={"amount": 100, "method": "cash"})
    test_client.post(f"{API}/clients/client-2/payments", json={"amount": 200, "method": "cash"})

    stats = test_client.get(f"{API}/stats").json()
    assert stats["client_count"] == 2
    assert stats["total_expected"] == 500
    assert stats["total_collected"] == 300
    assert stats["collection_rate"] == pytest.approx(60.0)

    payments = test_client.get(f"{API}/payments", params={"limit": 1}).json()
    assert len(payments) == 1


def test_reset_accounting(test_client):
    _initialize(test_client)
    test_client.post(f"{API}/clients/client-1/payments", json={"amount": 100, "method": "cash"})

    response = test_client.delete(f"{API}/clients/client-1/accounting")

    assert response.json() == {
        "client_id": "client-1",
        "schedules_deleted": 1,
        "invoices_deleted": 1,
        "payments_deleted": 1,
    }
    assert test_client.get(f"{API}/clients/client-1/schedule").status_code == 404


def test_store_connectivity_maps_to_503(test_client, store, monkeypatch):
    async def blocked(client_id):
        raise ConnectivityBlockedError("ERR_BLOCKED_BY_CLIENT")

    monkeypatch.setattr(store, "get_active_schedule", blocked)

    response = test_client.get(f"{API}/clients/client-1/schedule")

    assert response.status_code == 503
    assert "ERR_BLOCKED_BY_CLIENT" in response.json()["detail"]

"""
End-to-end tests of the JSON blueprints.
"""

from datetime import date

import pytest


@pytest.fixture
def office_id(client):
    response = client.post("/external-accounts/offices/new",
                           json={"office_name": "Addis Recruitment", "country": "ethiopia"})
    assert response.status_code == 201
    return response.get_json()["id"]


@pytest.fixture
def order(client, office_id):
    response = client.post("/cvs/new", json={
        "worker_name": "Almaz Tesfaye",
        "passport_number": "EP100",
        "nationality": "ethiopia",
        "profession": "housemaid",
        "external_office_id": office_id,
        "musaned_status": "uploaded",
        "external_office_status": "ready",
        "medical_exam_date": date.today().isoformat(),
    })
    assert response.status_code == 201
    assert response.get_json()["availability"] == "available"

    response = client.post("/orders/new", json={
        "client_name": "Saleh Al-Harbi",
        "nationality": "ethiopia",
        "profession": "housemaid",
        "passport_number": "EP100",
        "contract_number": "C-100",
    })
    assert response.status_code == 201
    return response.get_json()


class TestOrderLifecycle:
    def test_contract_and_forecast(self, client, order):
        contract_id = order["contract"]["id"]
        response = client.post(f"/contracts/{contract_id}",
                               json={"client_payment": "10000", "external_commission_usd": "100"})
        assert response.status_code == 200
        assert response.get_json()["approx_profit"] == "9249.00"

        response = client.post(f"/orders/{order['id']}/status", json={"status": "contracted"})
        assert response.status_code == 200
        body = response.get_json()
        assert body["previous_status"] == "selected"
        assert [e["transaction_type"] for e in body["entries"]] == ["EXTERNAL_COMMISSION_FORECAST"]

        response = client.get(f"/track/{order['contract']['magic_token']}")
        assert response.status_code == 200
        assert response.get_json()["progress_percent"] == 13

    def test_invalid_transition_is_a_400(self, client, order):
        client.post(f"/orders/{order['id']}/status", json={"status": "visa_issued"})
        response = client.post(f"/orders/{order['id']}/status", json={"status": "selected"})
        assert response.status_code == 400
        assert "cannot move order" in response.get_json()["error"]

    def test_form_encoded_changes_are_a_400(self, client, order):
        response = client.post(f"/orders/{order['id']}/status",
                               data={"status": "ticket_booked", "changes": "travel_date=2025-06-01"})
        assert response.status_code == 400
        assert response.get_json()["error"] == "changes must be an object"

    def test_malformed_amount_is_a_400(self, client, order):
        contract_id = order["contract"]["id"]
        response = client.post(f"/contracts/{contract_id}", json={"client_payment": "5,000"})
        assert response.status_code == 400
        assert response.get_json()["error"] == "client_payment must be a number"

    def test_cancellation_flow(self, client, order):
        contract_id = order["contract"]["id"]
        client.post(f"/contracts/{contract_id}", json={"client_payment": "10000", "external_commission_usd": "100"})
        client.post(f"/orders/{order['id']}/status", json={"status": "contracted"})

        response = client.post(f"/orders/{order['id']}/status", json={"status": "cancelled"})
        assert response.status_code == 400

        response = client.post(f"/orders/{order['id']}/status",
                               json={"status": "cancelled", "cancellation": {"timing": "within_5_days"}})
        assert response.status_code == 200

        ledger = client.get(f"/contracts/{contract_id}/transactions").get_json()
        assert ledger["balance"]["total_in"] == "375.00"
        assert ledger["balance"]["total_out"] == "375.00"
        assert [line["balance"] for line in ledger["transactions"]] == ["-375.00", "0.00"]

    def test_worker_becomes_in_use(self, client, order):
        cvs = client.get("/cvs/").get_json()
        assert cvs[0]["availability"] == "in_use"
        assert cvs[0]["active_order_id"] == order["id"]
        assert client.get("/cvs/available").get_json() == []

    def test_duplicate_order_for_worker_is_a_409(self, client, order):
        response = client.post("/orders/new", json={
            "client_name": "Other Client",
            "nationality": "ethiopia",
            "profession": "housemaid",
            "passport_number": "EP100",
        })
        assert response.status_code == 409


class TestManualEntries:
    def test_only_manual_types(self, client, order):
        url = f"/contracts/{order['contract']['id']}/transactions"
        response = client.post(url, json={"transaction_type": "CONTRACT_REVENUE", "direction": "IN", "amount": "10"})
        assert response.status_code == 400

        response = client.post(url, json={"transaction_type": "OTHER_EXPENSE", "direction": "OUT", "amount": "10"})
        assert response.status_code == 201
        assert response.get_json()["amount"] == "10.00"


class TestOfficesAndReports:
    def test_payment_and_balances(self, client, office_id):
        response = client.post("/external-accounts/payments/new", json={
            "external_office_id": office_id, "amount_usd": "100", "payment_date": "2025-06-01",
        })
        assert response.status_code == 201
        assert response.get_json()["amount_sar"] == "375.00"

        body = client.get("/external-accounts/").get_json()
        assert body["offices"][0]["balance_usd"] == "-100.00"
        assert body["summary"]["offices_owing_us"] == 1

        statement = client.get(f"/external-accounts/offices/{office_id}/statement").get_json()
        assert len(statement["lines"]) == 1

    def test_reports_and_dashboard(self, client, order):
        assert client.get("/reports/delayed").status_code == 200
        assert client.get("/reports/financial?from=2020-01-01").status_code == 200
        response = client.get("/")
        assert response.status_code == 200
        assert response.get_json()["stats"]["active_orders"] == 1

    def test_bad_report_date(self, client):
        assert client.get("/reports/financial?from=yesterday").status_code == 400


class TestNotFound:
    def test_unknown_token(self, client):
        response = client.get("/track/no-such-token")
        assert response.status_code == 404
        assert "error" in response.get_json()

    def test_unknown_order(self, client):
        assert client.get("/orders/999").status_code == 404

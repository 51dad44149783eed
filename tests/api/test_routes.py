"""
HTTP API Tests.

============================================================
PURPOSE
============================================================
Routes and error mapping through FastAPI's TestClient,
backed by MockLedger.

============================================================
"""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from api import create_app
from api.main import STATUS_BY_CODE
from ledger_client import MockLedger, MockLedgerConfig, TransactionStatus
from orchestrator import create_orchestrator
from attestation.prover import SimulatedProver
from tests.factories import ADDRESS, SIGNING_KEY, seed_account


@pytest.fixture
def client(orchestrator):
    with TestClient(create_app(orchestrator)) as test_client:
        yield test_client


class TestSystemRoutes:

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_health(self, client):
        body = client.get("/health").json()

        assert body["success"] is True
        assert body["data"]["ledger"] == "mock_ledger"
        assert body["data"]["ledger_healthy"] is True
        assert body["data"]["cache"]["size"] == 0

    def test_health_reports_unreachable_ledger(self, config, clock):
        ledger = MockLedger(MockLedgerConfig(healthy=False), clock=clock)
        app = create_app(create_orchestrator(config, ledger=ledger, clock=clock))

        with TestClient(app) as client:
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["data"]["ledger_healthy"] is False
        assert response.json()["message"] == "Ledger unreachable"

    def test_ledger_checked_once_across_account_requests(self, orchestrator, ledger, clock):
        seed_account(ledger, clock)
        ledger.health = AsyncMock(return_value=True)

        with TestClient(create_app(orchestrator)) as client:
            for _ in range(5):
                assert client.get(f"/accounts/{ADDRESS}/assessment").status_code == 200

        assert ledger.health.await_count == 1

    def test_health_route_checks_ledger_each_call(self, orchestrator, ledger):
        ledger.health = AsyncMock(return_value=True)

        with TestClient(create_app(orchestrator)) as client:
            client.get("/health")
            client.get("/health")

        assert ledger.health.await_count == 3


class TestAccountRoutes:

    def test_metrics_cached_on_second_request(self, client, ledger, clock):
        seed_account(ledger, clock)

        first = client.get(f"/accounts/{ADDRESS}/metrics").json()
        second = client.get(f"/accounts/{ADDRESS}/metrics").json()

        assert first["data"]["cached"] is False
        assert second["data"]["cached"] is True
        assert first["data"]["transaction_count"] == 30
        assert {f["source"] for f in first["data"]["fields"]} == {"live"}

    def test_metrics_fallback_provenance(self, client, ledger, clock):
        seed_account(ledger, clock)
        ledger.fail_resource("balance")

        fields = client.get(f"/accounts/{ADDRESS}/metrics").json()["data"]["fields"]
        balance = next(f for f in fields if f["field"] == "balance")

        assert balance["source"] == "fallback"
        assert balance["fallback_reason"]

    def test_assessment(self, client, ledger, clock):
        seed_account(ledger, clock)

        data = client.get(f"/accounts/{ADDRESS}/assessment").json()["data"]

        assert data["final_score"] == 650
        assert data["risk_tier"] == "medium"
        assert data["breakdown"]["bonuses"] == {
            "transactions": 100,
            "account_age": 100,
            "activity": 100,
            "repayment": 50,
        }
        assert data["fallback_fields"] == []

    def test_issuance(self, client, ledger, clock):
        seed_account(ledger, clock)

        response = client.post(
            f"/accounts/{ADDRESS}/issuance",
            json={"signing_key": SIGNING_KEY},
        )

        data = response.json()["data"]
        assert response.status_code == 200
        assert data["issued_record"]["owner"] == ADDRESS
        assert data["issued_record"]["score"] == 650
        assert data["explorer_url"].endswith(f"/transaction/{data['transaction_id']}")
        assert len(ledger.broadcasts) == 1

    def test_issuance_requires_signing_key(self, client):
        response = client.post(f"/accounts/{ADDRESS}/issuance", json={})

        assert response.status_code == 422

    def test_score_lookup(self, client, ledger):
        assert client.get(f"/accounts/{ADDRESS}/score").json()["data"]["issued"] is False

        ledger.issue_score(ADDRESS, 705)
        data = client.get(f"/accounts/{ADDRESS}/score").json()["data"]

        assert data == {"address": ADDRESS, "score": 705, "issued": True}


class TestErrorMapping:

    def test_invalid_address(self, client):
        response = client.get("/accounts/aleo1bad/assessment")

        body = response.json()
        assert response.status_code == 400
        assert body["success"] is False
        assert body["error"]["code"] == "ADDRESS_FORMAT"
        assert body["error"]["stage"] == "init"

    def test_out_of_range_metrics(self, client, ledger, clock):
        seed_account(ledger, clock, defi_score=150)

        response = client.get(f"/accounts/{ADDRESS}/assessment")

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "METRICS_VALIDATION"

    def test_confirmation_timeout(self, config, clock):
        ledger = MockLedger(MockLedgerConfig(final_status=TransactionStatus.PENDING), clock=clock)
        seed_account(ledger, clock)
        orchestrator = create_orchestrator(
            config, ledger=ledger, prover=SimulatedProver(0, 0), clock=clock
        )

        with TestClient(create_app(orchestrator)) as client:
            response = client.post(
                f"/accounts/{ADDRESS}/issuance",
                json={"signing_key": SIGNING_KEY},
            )

        error = response.json()["error"]
        assert response.status_code == 504
        assert error["code"] == "CONFIRMATION_TIMEOUT"
        assert error["transaction_id"] is not None
        assert error["resubmit_safe"] is False

    def test_status_table(self):
        assert STATUS_BY_CODE["CONFIRMATION_TIMEOUT"] == 504
        assert STATUS_BY_CODE["METRICS_FETCH"] == 503

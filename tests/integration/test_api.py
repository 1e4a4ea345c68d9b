import asyncio
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from paystream.api import create_app
from paystream.contracts import Employee
from paystream.exceptions import SettlementNetworkError


def _hire(repository, count, salary=52000.0):
    for i in range(1, count + 1):
        asyncio.run(
            repository.add_employee(
                Employee(
                    name=f"Employee {i}",
                    email=f"e{i}@example.com",
                    wallet_address="0x" + f"{i:040x}",
                    salary_annual=salary,
                )
            )
        )


@pytest.fixture
def client(services):
    with TestClient(create_app(services=services)) as client:
        yield client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_balance_and_pending_summary(client, services, repository):
    _hire(repository, 2)

    balance = client.get("/balance").json()
    assert balance["success"] is True
    assert balance["balance"] == 100000.0
    assert balance["fundingAddress"] == services.network.funding_address

    summary = client.get("/payroll").json()
    assert summary["pendingCount"] == 2
    assert summary["employees"][0]["walletAddress"].startswith("0x")


def test_run_payroll_without_employees(client):
    response = client.post("/payroll")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "No pending employees to process"


def test_run_payroll_settles(client, repository, network):
    _hire(repository, 3)

    response = client.post("/payroll")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["status"] == "completed"
    assert body["paid"] == 3
    assert body["totalPaid"] == 4800.0
    assert body["tx"] == network.submissions[0]["tx_hash"]
    assert len(body["payrollResults"]) == 3
    assert body["payrollResults"][0]["netPay"] == 1600.0

    detail = client.get(f"/workflows/executions/{body['executionId']}")
    execution = detail.json()["execution"]
    assert execution["status"] == "completed"
    assert execution["outputs"]["transactionHash"] == body["tx"]

    provenance = client.get(f"/workflows/executions/{body['executionId']}/provenance")
    assert provenance.status_code == 200
    assert provenance.json()["provenance"]["executionId"] == body["executionId"]


def test_insufficient_balance_is_a_client_error(client, repository, network):
    network.balance = Decimal("1")
    _hire(repository, 2)

    response = client.post("/payroll")

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "INSUFFICIENT_BALANCE"
    assert body["errorKind"] == "insufficient_funds"
    assert body["details"]["shortfall"] == 3199.0
    assert network.submissions == []


def test_network_failure_is_a_bad_gateway(client, repository, network):
    network.fail_next_submissions(SettlementNetworkError("invalid sender"))
    _hire(repository, 1)

    response = client.post("/payroll")

    assert response.status_code == 502
    assert response.json()["errorKind"] == "submission_error"


def test_review_round_trip(client, repository, network):
    _hire(repository, 2, salary=300000.0)

    response = client.post("/payroll")
    assert response.status_code == 202
    review_id = response.json()["reviewId"]

    reviews = client.get("/workflows/reviews").json()
    assert reviews["count"] == 1
    assert reviews["reviews"][0]["id"] == review_id
    assert client.get(
        "/workflows/reviews", params={"workflowType": "expense-approval"}
    ).json()["count"] == 0

    response = client.post(
        "/workflows/reviews/submit",
        json={"reviewId": review_id, "decision": "approved", "reviewer": "alice@example.com"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Review approved successfully"
    assert body["executionStatus"] == "completed"
    assert body["tx"] == network.submissions[0]["tx_hash"]

    response = client.post(
        "/workflows/reviews/submit",
        json={"reviewId": review_id, "decision": "rejected", "reviewer": "bob@example.com"},
    )
    assert response.status_code == 409
    assert response.json()["errorKind"] == "review_already_decided"
    assert len(network.submissions) == 1


def test_review_submission_errors(client):
    missing = client.post("/workflows/reviews/submit", json={"reviewId": "abc"})
    assert missing.status_code == 400
    assert missing.json()["error"] == "Missing required fields: reviewId, decision, reviewer"

    invalid = client.post(
        "/workflows/reviews/submit",
        json={"reviewId": "abc", "decision": "maybe", "reviewer": "alice@example.com"},
    )
    assert invalid.status_code == 400
    assert invalid.json()["errorKind"] == "invalid_review_decision"

    unknown = client.post(
        "/workflows/reviews/submit",
        json={"reviewId": "abc", "decision": "approved", "reviewer": "alice@example.com"},
    )
    assert unknown.status_code == 404
    assert unknown.json()["errorKind"] == "review_not_found"

    not_an_object = client.post("/workflows/reviews/submit", json=["abc"])
    assert not_an_object.status_code == 400


def test_execution_listing_and_lookup(client, repository):
    _hire(repository, 1)
    client.post("/payroll")

    listing = client.get("/workflows/executions", params={"status": "completed"})
    assert listing.status_code == 200
    assert listing.json()["count"] == 1

    missing = client.get("/workflows/executions/does-not-exist")
    assert missing.status_code == 404
    assert missing.json()["errorKind"] == "execution_not_found"

"""End-to-end pipeline scenarios against the simulated settlement network."""

from decimal import Decimal

import pytest

import paystream.orchestrator as orchestrator_module
from paystream.config import PaystreamConfig, PolicyConfig
from paystream.contracts import Employee, WorkflowInput, WorkflowMetadata
from paystream.exceptions import RateLimitedError, WorkflowExecutionError
from paystream.services import build_services


def _wallet(n: int) -> str:
    return "0x" + f"{n:040x}"


def _payroll_input(*amounts, requested_by="ops@example.com") -> WorkflowInput:
    return WorkflowInput(
        workflow_type="payroll-approval",
        data={
            "employees": [
                {
                    "id": i,
                    "name": f"Employee {i}",
                    "email": f"e{i}@example.com",
                    "walletAddress": _wallet(i),
                    "amount": amount,
                    "status": "active",
                }
                for i, amount in enumerate(amounts, start=1)
            ]
        },
        metadata=WorkflowMetadata(priority="high", requested_by=requested_by),
    )


async def _add_employees(repository, count):
    for i in range(1, count + 1):
        await repository.add_employee(
            Employee(name=f"Employee {i}", email=f"e{i}@example.com", wallet_address=_wallet(i))
        )


class _FailingScorer:
    version = "failing-scorer/0"

    async def score(self, workflow_type, data):
        raise RuntimeError("model unavailable")


class _FailingNotifier:
    async def send_pay_stub(self, stub):
        raise ConnectionError("smtp down")


@pytest.mark.asyncio
async def test_small_batch_is_settled_in_one_transaction(repository, network, notifier):
    services = build_services(
        PaystreamConfig(policy=PolicyConfig(approval_threshold=5000)),
        repository=repository,
        network=network,
        notifier=notifier,
    )
    await _add_employees(repository, 3)

    execution = await services.orchestrator.run(_payroll_input(500, 500, 500))

    assert execution.status == "completed"
    assert execution.decision.decision == "auto_approve"
    assert [s.step for s in execution.steps] == [
        "intake",
        "understand",
        "decide",
        "execute",
        "deliver",
    ]
    assert all(s.status == "completed" and s.end_time is not None for s in execution.steps)
    assert len(network.submissions) == 1
    assert network.submissions[0]["value"] == 1_500_000_000
    assert execution.outputs["transactionHash"] == network.submissions[0]["tx_hash"]
    assert execution.outputs["employeesProcessed"] == 3
    assert execution.outputs["totalPaid"] == 1500.0
    assert execution.outputs["emailsSent"] == 3
    assert len(notifier.sent) == 3
    assert execution.end_time is not None and execution.duration is not None

    stored = await repository.get_execution(execution.id)
    assert stored.status == "completed"
    provenance = await repository.get_provenance(execution.id)
    assert provenance == execution.provenance
    assert provenance.approvers == ["ops@example.com"]
    assert all(e.status == "paid" for e in await repository.list_employees())


@pytest.mark.asyncio
async def test_batch_over_threshold_waits_for_review(services, network):
    execution = await services.orchestrator.run(_payroll_input(20000))

    assert execution.status == "pending"
    assert execution.decision.decision == "flag_for_review"
    assert execution.review_request is not None
    assert execution.review_request.workflow_execution_id == execution.id
    assert execution.review_request.priority == "high"
    review_step = execution.steps[-1]
    assert review_step.step == "review"
    assert review_step.status == "pending"
    assert review_step.end_time is None
    assert network.submissions == []
    assert execution.provenance is None

    pending = await services.reviews.list_pending()
    assert [r.id for r in pending] == [execution.review_request.id]
    stored = await services.repository.get_execution(execution.id)
    assert stored.status == "pending"


@pytest.mark.asyncio
async def test_reviewer_rejection_never_settles(services, network):
    execution = await services.orchestrator.run(_payroll_input(20000))

    result = await services.reviews.submit(
        execution.review_request.id, "rejected", "alice@example.com", notes="Too large"
    )

    assert result.status == "rejected"
    assert network.submissions == []
    assert result.find_step("execute") is None
    assert result.find_step("review").status == "completed"
    assert result.provenance.reviewer == "alice@example.com"
    assert result.provenance.approvers == ["ops@example.com"]
    assert await services.reviews.list_pending() == []


@pytest.mark.asyncio
async def test_reviewer_approval_resumes_at_execute(services, network, notifier):
    execution = await services.orchestrator.run(_payroll_input(12000))

    result = await services.reviews.submit(
        execution.review_request.id, "approved", "alice@example.com"
    )

    assert result.status == "completed"
    assert [s.step for s in result.steps] == [
        "intake",
        "understand",
        "decide",
        "review",
        "execute",
        "deliver",
    ]
    assert len(network.submissions) == 1
    assert result.outputs["transactionHash"] == network.submissions[0]["tx_hash"]
    assert result.provenance.approvers == ["ops@example.com", "alice@example.com"]
    assert len(notifier.sent) == 1

    stored = await services.repository.get_execution(execution.id)
    assert stored.status == "completed"
    assert stored.review_request.decision == "approved"


@pytest.mark.asyncio
async def test_approval_refuses_payees_paid_since_the_review_opened(services, network):
    await _add_employees(services.repository, 1)
    first = await services.orchestrator.run(_payroll_input(20000))
    second = await services.orchestrator.run(_payroll_input(20000))

    paid = await services.reviews.submit(
        first.review_request.id, "approved", "alice@example.com"
    )
    refused = await services.reviews.submit(
        second.review_request.id, "approved", "alice@example.com"
    )

    assert paid.status == "completed"
    assert refused.status == "rejected"
    assert refused.error.kind == "ineligible_payees"
    assert refused.error.details == {"employeeIds": [1]}
    assert refused.find_step("execute").status == "failed"
    assert refused.find_step("deliver") is None
    assert refused.provenance is not None
    assert len(network.submissions) == 1
    assert network.balance == Decimal("80000")
    stored = await services.repository.get_execution(second.id)
    assert stored.status == "rejected"


@pytest.mark.asyncio
async def test_invalid_wallet_is_rejected_without_settlement(services, network):
    workflow_input = _payroll_input(500, 500)
    workflow_input.data["employees"][1]["walletAddress"] = "not-an-address"

    execution = await services.orchestrator.run(workflow_input)

    assert execution.status == "rejected"
    assert "1 employee(s) with invalid wallet addresses" in execution.decision.flags
    assert [s.step for s in execution.steps] == ["intake", "understand", "decide"]
    assert network.submissions == []
    assert execution.provenance is not None


@pytest.mark.asyncio
async def test_insufficient_funds_fails_the_execution(services, network):
    network.balance = Decimal("100")

    execution = await services.orchestrator.run(_payroll_input(500, 500))

    assert execution.status == "failed"
    assert execution.error.kind == "insufficient_funds"
    assert execution.error.details["shortfall"] == 900.0
    assert execution.find_step("execute").status == "failed"
    assert execution.outputs["transactionHash"] is None
    assert network.submissions == []
    assert execution.provenance is not None


@pytest.mark.asyncio
async def test_exhausted_retries_fail_the_execution(services, network):
    network.fail_next_submissions(*[RateLimitedError("429") for _ in range(3)])

    execution = await services.orchestrator.run(_payroll_input(500))

    assert execution.status == "failed"
    assert execution.error.kind == "submission_error"
    assert execution.error.details["attempts"] == 3
    assert network.submissions == []


@pytest.mark.asyncio
async def test_malformed_input_fails_at_intake(services):
    execution = await services.orchestrator.run(
        WorkflowInput(workflow_type="payroll-approval", data={"employees": []})
    )

    assert execution.status == "failed"
    assert execution.error.kind == "validation_error"
    assert [s.step for s in execution.steps] == ["intake"]
    assert execution.steps[0].status == "failed"


@pytest.mark.asyncio
async def test_scorer_failure_degrades_confidence(repository, network, config):
    services = build_services(
        config, repository=repository, network=network, scorer=_FailingScorer()
    )

    execution = await services.orchestrator.run(_payroll_input(500))

    assert execution.status == "completed"
    assert execution.find_step("understand").confidence == 0.5
    assert execution.provenance.models == ["decision-engine/1.0", "failing-scorer/0"]


@pytest.mark.asyncio
async def test_notification_failure_keeps_settlement(repository, network, config):
    services = build_services(
        config, repository=repository, network=network, notifier=_FailingNotifier()
    )

    execution = await services.orchestrator.run(_payroll_input(500, 250))

    assert execution.status == "completed"
    assert execution.outputs["emailsSent"] == 0
    assert execution.find_step("deliver").result == {"emailsSent": 0, "failed": 2}


@pytest.mark.asyncio
async def test_mismatched_total_is_recomputed(services):
    workflow_input = _payroll_input(500, 500)
    workflow_input.data["totalAmount"] = 50000

    execution = await services.orchestrator.run(workflow_input)

    assert execution.status == "completed"
    assert execution.inputs["totalAmount"] == 1000.0
    adjustments = execution.find_step("understand").result["adjustments"]
    assert adjustments == [{"field": "totalAmount", "supplied": 50000.0, "computed": 1000.0}]


@pytest.mark.asyncio
async def test_expense_workflow_needs_no_settlement(services, network):
    execution = await services.orchestrator.run(
        WorkflowInput(workflow_type="expense-approval", data={"amount": 120})
    )

    assert execution.status == "completed"
    assert execution.find_step("execute").result == "No settlement required"
    assert execution.find_step("deliver").status == "completed"
    assert network.submissions == []


@pytest.mark.asyncio
async def test_unexpected_failure_is_persisted_and_raised(services, monkeypatch):
    def _broken(*args, **kwargs):
        raise RuntimeError("rules table corrupted")

    monkeypatch.setattr(orchestrator_module, "evaluate", _broken)

    with pytest.raises(WorkflowExecutionError) as excinfo:
        await services.orchestrator.run(_payroll_input(500))

    assert excinfo.value.step == "decide"
    stored = await services.repository.get_execution(excinfo.value.execution_id)
    assert stored.status == "failed"
    assert stored.error.kind == "workflow_error"
    assert stored.find_step("decide").status == "failed"

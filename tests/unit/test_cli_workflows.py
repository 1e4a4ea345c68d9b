import asyncio

from typer.testing import CliRunner

import paystream.persistence as persistence
from paystream.cli import app
from paystream.contracts import Employee, WorkflowExecution
from paystream.persistence import InMemoryRepository


def _setup_repo() -> InMemoryRepository:
    repo = InMemoryRepository()
    persistence._repository_instance = repo
    return repo


def _add_employees(repo, salary, count=2):
    for i in range(1, count + 1):
        asyncio.run(
            repo.add_employee(
                Employee(
                    name=f"Employee {i}",
                    email=f"e{i}@example.com",
                    wallet_address="0x" + f"{i:040x}",
                    salary_annual=salary,
                )
            )
        )


def test_employee_add_and_list():
    repo = _setup_repo()
    runner = CliRunner()

    result = runner.invoke(
        app,
        ["employee", "add", "Ada", "ada@example.com", "--wallet", "0x" + "a" * 40, "--salary", "52000"],
    )
    assert result.exit_code == 0, f"Command failed: {result.stdout}"
    assert "Added employee 1: Ada" in result.stdout

    result = runner.invoke(app, ["employee", "list"])
    assert result.exit_code == 0
    assert "Ada" in result.stdout
    assert "pending" in result.stdout

    employees = asyncio.run(repo.list_employees())
    assert employees[0].salary_annual == 52000.0


def test_employee_add_accepts_operator_statuses_only():
    repo = _setup_repo()
    runner = CliRunner()

    result = runner.invoke(app, ["employee", "add", "Ada", "ada@example.com", "--status", "active"])
    assert result.exit_code == 0, f"Command failed: {result.stdout}"

    for status in ("paid", "retired"):
        result = runner.invoke(
            app, ["employee", "add", "Bob", "bob@example.com", "--status", status]
        )
        assert result.exit_code == 2

    employees = asyncio.run(repo.list_employees())
    assert [(e.name, e.status) for e in employees] == [("Ada", "active")]


def test_employee_list_empty():
    _setup_repo()
    result = CliRunner().invoke(app, ["employee", "list"])
    assert result.exit_code == 0
    assert "No employees found" in result.stdout


def test_payroll_run_settles_small_batch():
    repo = _setup_repo()
    _add_employees(repo, salary=52000)

    result = CliRunner().invoke(app, ["payroll", "run", "--requested-by", "ops@example.com"])
    assert result.exit_code == 0, f"Command failed: {result.stdout}"
    assert "completed" in result.stdout
    assert "Paid 2 employees, total 3200.00" in result.stdout
    assert "Transaction: 0x" in result.stdout
    assert all(e.status == "paid" for e in asyncio.run(repo.list_employees()))


def test_payroll_run_without_pending_employees_exits_nonzero():
    _setup_repo()
    result = CliRunner().invoke(app, ["payroll", "run"])
    assert result.exit_code == 1
    assert "No pending employees to process" in result.stdout


def test_review_flow_through_cli():
    repo = _setup_repo()
    _add_employees(repo, salary=300000)
    runner = CliRunner()

    result = runner.invoke(app, ["payroll", "run"])
    assert result.exit_code == 0, f"Command failed: {result.stdout}"
    assert "pending" in result.stdout

    execution = asyncio.run(repo.list_executions(status="pending"))[0]
    review_id = execution.review_request.id

    result = runner.invoke(app, ["review", "list"])
    assert review_id in result.stdout

    result = runner.invoke(
        app, ["review", "submit", review_id, "approved", "--reviewer", "alice@example.com"]
    )
    assert result.exit_code == 0, f"Command failed: {result.stdout}"
    assert f"Execution {execution.id}: completed" in result.stdout

    result = runner.invoke(
        app, ["review", "submit", review_id, "rejected", "--reviewer", "bob@example.com"]
    )
    assert result.exit_code == 1
    assert "already approved" in result.stdout

    result = runner.invoke(app, ["review", "list"])
    assert "No pending reviews" in result.stdout


def test_workflow_list_and_show():
    repo = _setup_repo()
    execution = WorkflowExecution(workflow_type="expense-approval", status="completed")
    asyncio.run(repo.create_execution(execution))
    runner = CliRunner()

    result = runner.invoke(app, ["workflow", "list"])
    assert result.exit_code == 0
    assert execution.id in result.stdout

    result = runner.invoke(app, ["workflow", "show", execution.id])
    assert result.exit_code == 0
    assert f"Workflow {execution.id} (expense-approval): completed" in result.stdout

    result_missing = runner.invoke(app, ["workflow", "show", "missing-id"])
    assert result_missing.exit_code == 1
    assert "Workflow not found" in result_missing.stdout


def test_workflow_list_empty():
    _setup_repo()
    result = CliRunner().invoke(app, ["workflow", "list", "--status", "failed"])
    assert result.exit_code == 0
    assert "No workflows found" in result.stdout

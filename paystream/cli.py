"""Command line interface for the paystream pipeline."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional

import typer

from paystream.config import load_config
from paystream.contracts import Employee
from paystream.exceptions import PaystreamError
from paystream.persistence import get_repository
from paystream.services import Services, build_services

app = typer.Typer(help="CLI for the Paystream payroll pipeline")

# Command groups
payroll_app = typer.Typer(help="Commands for running payroll")
workflow_app = typer.Typer(help="Commands for inspecting workflow executions")
review_app = typer.Typer(help="Commands for the human review queue")
employee_app = typer.Typer(help="Commands for managing employees")

app.add_typer(payroll_app, name="payroll")
app.add_typer(workflow_app, name="workflow")
app.add_typer(review_app, name="review")
app.add_typer(employee_app, name="employee")


class NewEmployeeStatus(str, Enum):
    """Statuses an operator may assign. ``paid`` is only set by settlement."""

    pending = "pending"
    active = "active"
    inactive = "inactive"


@app.callback()
def main() -> None:
    """Paystream CLI entry point."""
    config = load_config()
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _services() -> Services:
    return build_services(load_config(), repository=get_repository())


@app.command("serve")
def serve(
    host: Optional[str] = None,
    port: Optional[int] = None,
) -> None:
    """
    Run the HTTP API.

    Example:
        paystream serve --port 8080
    """
    import uvicorn

    from paystream.api import create_app

    config = load_config()
    uvicorn.run(
        create_app(config=config),
        host=host or config.api.host,
        port=port or config.api.port,
    )


@payroll_app.command("run")
def payroll_run(requested_by: Optional[str] = None) -> None:
    """
    Pay every pending employee.

    Large batches are parked for review instead of being paid.

    Example:
        paystream payroll run --requested-by ops@company.com
        # Output: completed: paid 3 employees, total 1500.00
        #         Transaction: 0xabc...
    """
    services = _services()
    outcome = asyncio.run(services.payroll.process_payroll(requested_by=requested_by))
    if outcome.status is None:
        typer.echo(outcome.message)
        raise typer.Exit(code=1)

    typer.echo(f"Execution {outcome.execution_id}: {outcome.status}")
    if outcome.status == "completed":
        typer.echo(f"Paid {outcome.paid} employees, total {outcome.total_paid:.2f}")
        typer.echo(f"Transaction: {outcome.tx}")
    elif outcome.status == "pending":
        typer.echo(f"Awaiting review {outcome.review_id}")
    elif outcome.status == "rejected":
        typer.echo(f"Rejected: {outcome.message}")
    else:
        typer.secho(f"Failed: {outcome.error}", fg=typer.colors.RED)
        raise typer.Exit(code=1)


@workflow_app.command("list")
def workflow_list(status: Optional[str] = None) -> None:
    """
    List workflow executions with their current status.

    Example:
        paystream workflow list --status pending
        # Output: 1b2c...    payroll-approval    pending
    """
    repo = get_repository()
    executions = asyncio.run(repo.list_executions(status=status))
    if not executions:
        typer.echo("No workflows found")
        return
    for execution in executions:
        typer.echo(f"{execution.id}\t{execution.workflow_type}\t{execution.status}")


@workflow_app.command("show")
def workflow_show(execution_id: str) -> None:
    """
    Show the decision and step history of one execution.

    Example:
        paystream workflow show 1b2c...
        # Output: Workflow 1b2c... (payroll-approval): completed
        #         Decision: auto_approve - All checks passed, amount under threshold
        #         - intake: completed (0.001s)
    """
    repo = get_repository()
    execution = asyncio.run(repo.get_execution(execution_id))
    if execution is None:
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)
    typer.echo(f"Workflow {execution.id} ({execution.workflow_type}): {execution.status}")
    if execution.decision:
        typer.echo(f"Decision: {execution.decision.decision} - {execution.decision.reason}")
        for flag in execution.decision.flags:
            typer.echo(f"  Flag: {flag}")
    for step in execution.steps:
        typer.echo(
            f"- {step.step}: {step.status}"
            + (f" ({step.duration:.3f}s)" if step.duration is not None else "")
        )
    if execution.outputs.get("transactionHash"):
        typer.echo(f"Transaction: {execution.outputs['transactionHash']}")
    if execution.error:
        typer.echo(f"Error ({execution.error.kind}): {execution.error.message}")


@review_app.command("list")
def review_list(workflow_type: Optional[str] = None) -> None:
    """List reviews awaiting a human decision."""
    services = _services()
    reviews = asyncio.run(services.reviews.list_pending(workflow_type))
    if not reviews:
        typer.echo("No pending reviews")
        return
    for review in reviews:
        typer.echo(f"{review.id}\t{review.workflow_type}\t{review.priority}\t{review.reason}")


@review_app.command("submit")
def review_submit(
    review_id: str,
    decision: str,
    reviewer: str = typer.Option(..., help="Identity of the person deciding"),
    notes: Optional[str] = None,
) -> None:
    """
    Approve or reject a pending review.

    An approval settles the payroll before the command returns.

    Example:
        paystream review submit 9f8e... approved --reviewer alice@co
    """
    services = _services()
    try:
        execution = asyncio.run(
            services.reviews.submit(review_id, decision, reviewer, notes)
        )
    except PaystreamError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(f"Review {review_id} {decision} by {reviewer}")
    typer.echo(f"Execution {execution.id}: {execution.status}")


@employee_app.command("add")
def employee_add(
    name: str,
    email: str,
    wallet: Optional[str] = typer.Option(None, help="Settlement wallet address"),
    salary: Optional[float] = typer.Option(None, help="Annual salary"),
    status: NewEmployeeStatus = typer.Option(
        NewEmployeeStatus.pending, help="Initial payment status"
    ),
) -> None:
    """Register an employee."""
    repo = get_repository()
    employee = asyncio.run(
        repo.add_employee(
            Employee(
                name=name,
                email=email,
                wallet_address=wallet,
                salary_annual=salary,
                status=status.value,
            )
        )
    )
    typer.echo(f"Added employee {employee.id}: {employee.name}")


@employee_app.command("list")
def employee_list(status: Optional[str] = None) -> None:
    """List employees and their payment status."""
    repo = get_repository()
    employees = asyncio.run(repo.list_employees(status=status))
    if not employees:
        typer.echo("No employees found")
        return
    for employee in employees:
        typer.echo(
            f"{employee.id}\t{employee.name}\t{employee.email}\t"
            f"{employee.wallet_address or '-'}\t{employee.status}"
        )


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()

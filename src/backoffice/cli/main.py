import asyncio
import datetime
import logging
from typing import List, Optional

import typer
from tortoise import Tortoise
from tortoise.exceptions import IntegrityError

from backoffice.core.config import TORTOISE_ORM_CONFIG
from backoffice.core.logging_config import setup_logging
from backoffice.features.auth import service as auth_service
from backoffice.features.auth.models import UserRole
from backoffice.features.auth.security import get_password_hash
from backoffice.features.reports.dependencies import create_report_engine
from backoffice.features.reports.exceptions import ReportError
from backoffice.features.reports.models import ReportType
from backoffice.features.reports.schemas import ReportFilters, ReportResponse

logger = logging.getLogger(__name__)

app = typer.Typer(name="backoffice", help="CLI for managing back-office users and reports.")


# Shared async context manager for database connection
class DBConnection:
    async def __aenter__(self):
        await Tortoise.init(config=TORTOISE_ORM_CONFIG)
        await Tortoise.generate_schemas(safe=True)  # Generate schema if it doesn't exist
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await Tortoise.close_connections()


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level.")):
    setup_logging(level="DEBUG" if verbose else "WARNING")


# User management commands
user_app = typer.Typer(name="users", help="Manage user accounts.")
app.add_typer(user_app)


@user_app.command("create")
def create_user_command(
    username: str = typer.Option(..., prompt=True, help="Username for the new user."),
    email: str = typer.Option(..., prompt=True, help="Email for the new user."),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True, help="Password for the new user."),
    role: UserRole = typer.Option(UserRole.EMPLOYEE, help="Role of the new user."),
    state: Optional[str] = typer.Option(None, help="State/region, used by the customers report."),
):
    """Creates a new user. Staff (admin, employee) may request reports."""
    asyncio.run(_create_user(username, email, password, role, state))


@user_app.command("create-admin")
def create_admin_user_command(
    username: str = typer.Option(..., prompt=True, help="Username for the new admin."),
    email: str = typer.Option(..., prompt=True, help="Email for the new admin."),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True, help="Password for the new admin.")
):
    """Creates a new admin user."""
    asyncio.run(_create_user(username, email, password, UserRole.ADMIN, None))


async def _create_user(username: str, email: str, password: str, role: UserRole, state: Optional[str]):
    async with DBConnection():
        typer.echo(f"Attempting to create {role.value} user: {username} ({email})...")
        if await auth_service.get_user_by_username(username):
            typer.secho(f"Error: User with username '{username}' already exists.", fg=typer.colors.RED)
            raise typer.Exit(code=1)
        if await auth_service.get_user_by_email(email):
            typer.secho(f"Error: User with email '{email}' already exists.", fg=typer.colors.RED)
            raise typer.Exit(code=1)

        try:
            user = await auth_service.create_user(
                username=username,
                email=email,
                hashed_password=get_password_hash(password),
                role=role,
                state=state,
            )
        except IntegrityError as e:
            typer.secho(f"Error creating user: {e}", fg=typer.colors.RED)
            raise typer.Exit(code=1)
        typer.secho(f"User '{user.username}' ({user.role}) created with ID: {user.public_id}", fg=typer.colors.GREEN)


# Report commands
report_app = typer.Typer(name="reports", help="Generate and inspect reports.")
app.add_typer(report_app)


def _filters_from_options(
    start_date: Optional[datetime.datetime],
    end_date: Optional[datetime.datetime],
    status: Optional[List[str]],
    payment_method: Optional[List[str]],
    category: Optional[List[str]],
) -> ReportFilters:
    return ReportFilters(
        start_date=start_date.date() if start_date else None,
        end_date=end_date.date() if end_date else None,
        status=status or None,
        payment_method=payment_method or None,
        product_category=category or None,
    )


@report_app.command("run")
def run_report_command(
    report_type: ReportType = typer.Argument(..., help="Report type to compute."),
    start_date: Optional[datetime.datetime] = typer.Option(None, formats=["%Y-%m-%d"], help="Inclusive start date."),
    end_date: Optional[datetime.datetime] = typer.Option(None, formats=["%Y-%m-%d"], help="Inclusive end date."),
    status: Optional[List[str]] = typer.Option(None, help="Order status to include (repeatable)."),
    payment_method: Optional[List[str]] = typer.Option(None, help="Payment method to include (repeatable)."),
    category: Optional[List[str]] = typer.Option(None, help="Product category to include (repeatable)."),
):
    """Computes report data on the spot and prints it as JSON. Nothing is stored."""
    filters = _filters_from_options(start_date, end_date, status, payment_method, category)
    asyncio.run(_run_report(report_type, filters))


async def _run_report(report_type: ReportType, filters: ReportFilters):
    async with DBConnection():
        engine = create_report_engine()
        try:
            data = await engine.compute_statistics(report_type, filters)
        except ReportError as e:
            typer.secho(f"Error: {e}", fg=typer.colors.RED)
            raise typer.Exit(code=1)
        typer.echo(data.model_dump_json(indent=2))


@report_app.command("create")
def create_report_command(
    name: str = typer.Argument(..., help="Report name (at least 3 characters)."),
    report_type: ReportType = typer.Argument(..., help="Report type to generate."),
    owner: str = typer.Option(..., help="Username of the staff member requesting the report."),
    start_date: Optional[datetime.datetime] = typer.Option(None, formats=["%Y-%m-%d"], help="Inclusive start date."),
    end_date: Optional[datetime.datetime] = typer.Option(None, formats=["%Y-%m-%d"], help="Inclusive end date."),
    status: Optional[List[str]] = typer.Option(None, help="Order status to include (repeatable)."),
    payment_method: Optional[List[str]] = typer.Option(None, help="Payment method to include (repeatable)."),
    category: Optional[List[str]] = typer.Option(None, help="Product category to include (repeatable)."),
):
    """Requests a stored report and waits for its generation to finish."""
    filters = _filters_from_options(start_date, end_date, status, payment_method, category)
    asyncio.run(_create_report(name, report_type, owner, filters))


async def _create_report(name: str, report_type: ReportType, owner_username: str, filters: ReportFilters):
    async with DBConnection():
        owner = await auth_service.get_user_by_username(owner_username)
        if not owner:
            typer.secho(f"Error: User with username '{owner_username}' not found.", fg=typer.colors.RED)
            raise typer.Exit(code=1)
        if owner.role not in (UserRole.ADMIN.value, UserRole.EMPLOYEE.value):
            typer.secho(f"Error: User '{owner_username}' is not allowed to request reports.", fg=typer.colors.RED)
            raise typer.Exit(code=1)

        engine = create_report_engine()
        try:
            report = await engine.create_report(
                name=name, report_type=report_type, owner=owner, filters=filters
            )
        except ReportError as e:
            typer.secho(f"Error: {e}", fg=typer.colors.RED)
            raise typer.Exit(code=1)

        typer.echo(f"Report {report.public_id} queued, waiting for it to finish...")
        await engine.dispatcher.join()
        report = await engine.get_report(report.public_id)
        colour = typer.colors.GREEN if report.error_message is None else typer.colors.RED
        typer.secho(f"Report {report.public_id}: {report.status.value}", fg=colour)
        typer.echo(ReportResponse.from_report(report).model_dump_json(indent=2))


@report_app.command("list")
def list_reports_command(
    username: str = typer.Argument(..., help="Owner of the reports."),
    page: int = typer.Option(1, min=1),
    limit: int = typer.Option(10, min=1, max=100),
):
    """Lists a user's reports, newest first."""
    asyncio.run(_list_reports(username, page, limit))


async def _list_reports(username: str, page: int, limit: int):
    async with DBConnection():
        owner = await auth_service.get_user_by_username(username)
        if not owner:
            typer.secho(f"Error: User with username '{username}' not found.", fg=typer.colors.RED)
            raise typer.Exit(code=1)

        reports, total = await create_report_engine().get_user_reports(owner.id, page=page, page_size=limit)
        typer.echo(f"{total} report(s) for '{username}', page {page}:")
        for report in reports:
            typer.echo(f"  {report.public_id}  {report.type.value:<10} {report.status.value:<10} {report.name}")


@report_app.command("show")
def show_report_command(report_id: str = typer.Argument(..., help="Public id of the report.")):
    """Prints a report, including its data once completed."""
    asyncio.run(_show_report(report_id))


async def _show_report(report_id: str):
    async with DBConnection():
        try:
            report = await create_report_engine().get_report(report_id)
        except ReportError as e:
            typer.secho(f"Error: {e}", fg=typer.colors.RED)
            raise typer.Exit(code=1)
        typer.echo(ReportResponse.from_report(report).model_dump_json(indent=2))


if __name__ == "__main__":
    app()

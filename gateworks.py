#!/usr/bin/env python3
"""Gateworks management CLI."""

import asyncio
import os
import subprocess
import sys

import click


def _run(args: list[str], *, replace: bool = False) -> None:
    click.echo(
        f"  {click.style('>', dim=True)} {click.style(' '.join(args), dim=True)}\n"
    )
    if replace:
        os.execvp(args[0], args)
    result = subprocess.run(args)
    if result.returncode != 0:
        click.echo(
            f"  {click.style('✗', fg='red')} exited with code {result.returncode}"
        )
        sys.exit(result.returncode)


def _ok(text: str) -> None:
    click.echo(f"  {click.style('✓', fg='green')} {text}")


def _fail(text: str) -> None:
    click.echo(f"  {click.style('✗', fg='red')} {text}")


def _header(text: str) -> None:
    click.echo(f"\n  {click.style(text, fg='cyan', bold=True)}\n")


@click.group()
def cli() -> None:
    """Gateworks management CLI."""


@cli.command()
@click.argument("uvicorn_args", nargs=-1)
def app(uvicorn_args: tuple[str, ...]) -> None:
    """Start uvicorn with --reload."""
    _header("Starting Gateworks")
    _run(["uvicorn", "src.app:app", "--reload", *uvicorn_args], replace=True)


@cli.group()
def db() -> None:
    """Database management commands."""


@db.command()
def up() -> None:
    """Start PostgreSQL (docker compose up)."""
    _header("Starting PostgreSQL")
    _run(["docker", "compose", "up", "-d"])
    _ok("PostgreSQL is running")


@db.command()
def down() -> None:
    """Stop PostgreSQL (docker compose down)."""
    _header("Stopping PostgreSQL")
    _run(["docker", "compose", "down"])
    _ok("PostgreSQL stopped")


@db.command()
def migrate() -> None:
    """Run alembic upgrade head."""
    _header("Running migrations")
    _run(["alembic", "upgrade", "head"])
    _ok("Migrations applied")


@db.command()
@click.argument("message", default="auto")
def revision(message: str) -> None:
    """Generate alembic migration."""
    _header(f"Generating migration: {message}")
    _run(["alembic", "revision", "--autogenerate", "-m", message])
    _ok("Migration generated")


@cli.command()
def remind() -> None:
    """Send today's maintenance reminders once."""
    from src.scheduler import run_scheduled_reminders

    _header("Sending maintenance reminders")
    summary = asyncio.run(run_scheduled_reminders())
    if summary is None:
        _fail("Reminder run failed, see the log above")
        sys.exit(1)

    for recipient in summary.sent_to:
        click.echo(f"    {recipient.client} ({recipient.facility})")
    _ok(summary.message)


@cli.command()
@click.argument("pytest_args", nargs=-1)
def test(pytest_args: tuple[str, ...]) -> None:
    """Run pytest."""
    _header("Running tests")
    _run(["pytest", "tests/", "-v", *pytest_args], replace=True)


@cli.command()
def lint() -> None:
    """Run mypy."""
    _header("Running mypy")
    _run(["mypy", "src", "gateworks.py"])
    _ok("Type check passed")


if __name__ == "__main__":
    cli()

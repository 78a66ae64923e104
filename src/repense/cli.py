"""Operator CLI for the Repense enrollment database."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from repense.config import ConfigError, Settings, load_settings
from repense.enrollment import EnrollmentService
from repense.logging import setup_logging
from repense.store import Database, Store


def _open(settings: Settings) -> Database:
    database = Database(settings.database_url, echo=settings.echo_sql)
    database.create_tables()
    return database


@click.group()
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    help="Path to repense.yaml (defaults to ./repense.yaml when present)",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """Repense enrollment administration."""
    try:
        settings = load_settings(config_path)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(2)

    setup_logging(
        log_dir=settings.log_dir,
        level="DEBUG" if verbose else settings.log_level,
    )
    ctx.obj = settings


@main.command("init-db")
@click.pass_obj
def init_db(settings: Settings) -> None:
    """Create tables if they don't exist."""
    database = _open(settings)
    database.close()
    click.echo("Database ready.")


@main.command()
@click.pass_obj
def reconcile(settings: Settings) -> None:
    """Report classes whose seat count disagrees with active enrollments.

    Exits with status 1 when any mismatch is found. Nothing is corrected.
    """
    database = _open(settings)
    try:
        mismatches = Store(database).reconcile_counts()
    finally:
        database.close()

    if not mismatches:
        click.echo("All seat counts match active enrollments.")
        return

    for mismatch in mismatches:
        click.echo(
            f"{mismatch.grupo_id}: enrolled_count={mismatch.enrolled_count} "
            f"active={mismatch.active_enrollments} (drift {mismatch.drift:+d})"
        )
    sys.exit(1)


@main.command()
@click.argument("student_id")
@click.option("--gender", default=None, help="Student gender filter (e.g. Masculino)")
@click.pass_obj
def available(settings: Settings, student_id: str, gender: str | None) -> None:
    """List classes STUDENT_ID can still join."""
    database = _open(settings)
    try:
        grouped = EnrollmentService(database).get_available_classes(student_id, gender)
    finally:
        database.close()

    if not grouped:
        click.echo("No classes available.")
        return

    for program_group, cities in grouped.items():
        click.echo(program_group)
        for city, classes in cities.items():
            click.echo(f"  {city}")
            for item in classes:
                start = item.start_date.date().isoformat() if item.start_date else "-"
                click.echo(
                    f"    {item.id}  {item.delivery_mode:<10} {item.time_slot or '-':<8} "
                    f"start={start}  seats={item.seats_remaining}/{item.capacity}"
                )


if __name__ == "__main__":
    main()

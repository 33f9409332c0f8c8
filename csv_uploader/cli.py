"""Command line entry point: csv-uploader."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from csv_uploader.core.config import Settings, get_settings
from csv_uploader.core.exceptions import UploaderError
from csv_uploader.core.logging import configure_logging
from csv_uploader.db.backend import DatabaseBackend
from csv_uploader.schemas.upload import DatabaseOptions, UploadResult
from csv_uploader.services.upload import UploadService

logger = logging.getLogger(__name__)

console = Console()

app = typer.Typer(
    name="csv-uploader",
    help="Validate, transform and import CSV files into MySQL, PostgreSQL or SQLite.",
    no_args_is_help=True,
)

# Common option types, shared by both commands
DriverOption = Annotated[
    Optional[str], typer.Option("--driver", "-d", help="Database driver: mysql, pgsql or sqlite")
]
UserOption = Annotated[Optional[str], typer.Option("--user", "-u", help="Database username")]
PasswordOption = Annotated[Optional[str], typer.Option("--password", "-p", help="Database password")]
HostOption = Annotated[Optional[str], typer.Option("--host", "-h", help="Database host, optionally host:port")]
DbNameOption = Annotated[Optional[str], typer.Option("--dbname", help="Database name")]
PathOption = Annotated[Optional[str], typer.Option("--path", help="SQLite database file")]
TableOption = Annotated[Optional[str], typer.Option("--table", "-t", help="Import table name")]
VerboseOption = Annotated[
    int,
    typer.Option("--verbose", "-v", count=True, help="Increase logging verbosity (-v=INFO, -vv=DEBUG)"),
]


def setup_logging(settings: Settings, verbosity: int = 0) -> None:
    """Log file at the configured level, stderr by verbosity (0=WARNING, 1=INFO, 2+=DEBUG)."""
    if verbosity >= 2:
        console_level = "DEBUG"
    elif verbosity >= 1:
        console_level = "INFO"
    else:
        console_level = "WARNING"

    configure_logging(
        level=settings.LOG_LEVEL,
        log_dir=settings.LOG_DIR,
        filename=settings.LOG_FILENAME,
        console_level=console_level,
    )


def print_result(result: UploadResult, dry_run: bool) -> None:
    """Render an upload summary and its error lines."""
    summary = Table(title="Dry run" if dry_run else "Upload", show_header=True)
    summary.add_column("Processed", justify="right")
    summary.add_column("Inserted", justify="right")
    summary.add_column("Skipped", justify="right")
    summary.add_row(str(result.processed), str(result.inserted), str(result.skipped))
    console.print(summary)

    if result.errors:
        console.print(f"\n[bold red]Errors ({len(result.errors)}):[/bold red]")
        for error in result.errors:
            console.print(f"  {error}", markup=False, highlight=False, soft_wrap=True)


def _run_create_table(service: UploadService, options: DatabaseOptions) -> None:
    service.create_table(options)
    console.print(f'[green]The table "{service.table_name}" has been created[/green]')


@app.command()
def upload(
    file: Annotated[
        Optional[Path],
        typer.Option("--file", "-f", help="CSV file to import", dir_okay=False),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", "--dry_run", help="Validate only, do not write to the database"),
    ] = False,
    create_table: Annotated[
        bool,
        typer.Option("--create-table", "--create_table", help="Create the table and exit"),
    ] = False,
    driver: DriverOption = None,
    user: UserOption = None,
    password: PasswordOption = None,
    host: HostOption = None,
    dbname: DbNameOption = None,
    path: PathOption = None,
    table: TableOption = None,
    batch_size: Annotated[
        Optional[int], typer.Option("--batch-size", "-b", min=1, help="Rows per INSERT")
    ] = None,
    verbose: VerboseOption = 0,
) -> None:
    """Import a CSV file into the configured table.

    With --create-table the table is created and nothing else happens.
    """
    settings = get_settings()
    setup_logging(settings, verbose)

    if not create_table and file is None:
        console.print("[red]Missing option --file (or use --create-table)[/red]")
        raise typer.Exit(2)

    options = settings.database_options(
        driver=driver, user=user, password=password, host=host, dbname=dbname, path=path
    )

    try:
        with DatabaseBackend() as database:
            service = UploadService.from_settings(settings, database, table_name=table, batch_size=batch_size)
            if create_table:
                _run_create_table(service, options)
                return
            result = service.upload(file, options, dry_run=dry_run)
    except UploaderError as e:
        console.print(str(e), style="red", markup=False, highlight=False, soft_wrap=True)
        raise typer.Exit(1)
    except SQLAlchemyError as e:
        logger.error(f"Upload aborted by a database error: {e}", exc_info=True)
        console.print(f"Upload aborted by a database error: {e}", style="red", markup=False, highlight=False)
        raise typer.Exit(1)

    print_result(result, dry_run)


@app.command("create-table")
def create_table_command(
    driver: DriverOption = None,
    user: UserOption = None,
    password: PasswordOption = None,
    host: HostOption = None,
    dbname: DbNameOption = None,
    path: PathOption = None,
    table: TableOption = None,
    verbose: VerboseOption = 0,
) -> None:
    """Create the import table from the column mapping."""
    settings = get_settings()
    setup_logging(settings, verbose)

    options = settings.database_options(
        driver=driver, user=user, password=password, host=host, dbname=dbname, path=path
    )

    try:
        with DatabaseBackend() as database:
            service = UploadService.from_settings(settings, database, table_name=table)
            _run_create_table(service, options)
    except UploaderError as e:
        console.print(str(e), style="red", markup=False, highlight=False, soft_wrap=True)
        raise typer.Exit(1)
    except SQLAlchemyError as e:
        logger.error(f"Table creation aborted by a database error: {e}", exc_info=True)
        console.print(
            f"Table creation aborted by a database error: {e}", style="red", markup=False, highlight=False
        )
        raise typer.Exit(1)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import List, Optional

import psycopg
import typer

from dumbo.config import get_settings
from dumbo.errors import StoreError
from dumbo.executor import Executor
from dumbo.infrastructure.db_factory import build_dsn, get_sync_connection
from dumbo.infrastructure.store import PsycopgStore
from dumbo.utils.logging import configure_logging

app = typer.Typer(help="dumbo fixture CLI.")

DsnOption = typer.Option(None, "--dsn", help="Optional DSN override for Postgres.")


def _connect(dsn: Optional[str]) -> psycopg.Connection:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    return get_sync_connection(dsn)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    dsn = build_dsn(settings)
    # Never echo the password.
    if settings.db_password:
        dsn = dsn.replace(f":{settings.db_password}@", ":***@")
    typer.echo(
        f"DSN={dsn} | retry_limit={settings.retry_limit} "
        f"strict_overrides={settings.strict_overrides} log_level={settings.log_level}"
    )


@app.command()
def script(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="SQL file to run."),
    dsn: Optional[str] = DsnOption,
) -> None:
    """
    Run a SQL script and commit it.
    """
    with _connect(dsn) as conn:
        Executor(PsycopgStore(conn)).run_script(path)
    typer.echo(f"Ran {path}.")


@app.command()
def truncate(
    tables: List[str] = typer.Argument(..., help="Tables to truncate."),
    dsn: Optional[str] = DsnOption,
) -> None:
    """
    Truncate tables, restarting identities and cascading.
    """
    with _connect(dsn) as conn:
        Executor(PsycopgStore(conn)).truncate(*tables)
    typer.echo(f"Truncated {', '.join(tables)}.")


@app.command()
def rows(
    query: str = typer.Argument(..., help="Query whose rows to print."),
    dsn: Optional[str] = DsnOption,
) -> None:
    """
    Print the rows returned by a query as JSON.
    """
    with _connect(dsn) as conn:
        records = Executor(PsycopgStore(conn)).fetch_rows(query)
    typer.echo(json.dumps(records, indent=2, default=str))


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
    except StoreError as exc:
        typer.echo(f"Error: {exc}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()

"""
cli.py

Command line entry points (console script `flight-tracker`):

  flight-tracker check      run the configured price check once
  flight-tracker search     search a route and store the new tickets
  flight-tracker init-db    create the tickets table
  flight-tracker serve      run the HTTP API with uvicorn
"""

import logging
from typing import Optional

import typer

from config import (
    DEFAULT_CURRENCY,
    DEFAULT_LIMIT,
    PORT,
    PRICE_CHECK_CURRENCY,
    configure_logging,
    get_api_token,
    get_database_url,
)
from db import store_scope
from errors import ConfigurationError, TrackerError
from schemas.search import SearchParams
from services.price_check import SearchOutcome, run_price_check, search_and_store

logger = logging.getLogger(__name__)

app = typer.Typer(help="Flight ticket price tracker.")


def _require_config() -> None:
    try:
        get_api_token()
        get_database_url()
    except ConfigurationError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=1)


def _print_outcome(outcome: SearchOutcome, currency: str) -> None:
    for t in outcome.tickets_for_client():
        if not isinstance(t, dict):
            typer.echo(f"unreadable ticket: {t!r}")
            continue
        typer.echo(
            f"{t.get('departure_at')} -> {t.get('return_at')}  {t.get('value')} {currency.upper()}  "
            f"duration={t.get('trip_duration')}  {t.get('ticket_link') or ''}"
        )
    report = outcome.report
    typer.echo(
        f"Found {len(outcome.tickets)} tickets: saved {report.new_count} new, "
        f"skipped {report.duplicate_count} duplicates, failed {report.failed_count}."
    )


@app.command()
def check() -> None:
    """
    Run the configured price check (PRICE_CHECK_* env vars) once.
    """
    configure_logging()
    _require_config()

    try:
        with store_scope() as store:
            store.ping()
            store.create_schema()
            with store.session() as db:
                outcome = run_price_check(db)
    except TrackerError as e:
        logger.error("[cli] price check failed: %s: %s", type(e).__name__, e)
        typer.echo(f"Price check failed: {e}", err=True)
        raise typer.Exit(code=1)

    _print_outcome(outcome, PRICE_CHECK_CURRENCY or DEFAULT_CURRENCY)


@app.command()
def search(
    origin: str = typer.Argument(..., help="Origin IATA code, e.g. YUL"),
    destination: str = typer.Argument(..., help="Destination IATA code, e.g. YVR"),
    depart_min: str = typer.Option(..., "--depart-min", help="Earliest departure date (YYYY-MM-DD)."),
    depart_max: str = typer.Option(..., "--depart-max", help="Latest departure date (YYYY-MM-DD)."),
    return_min: str = typer.Option(..., "--return-min", help="Earliest return date (YYYY-MM-DD)."),
    return_max: str = typer.Option(..., "--return-max", help="Latest return date (YYYY-MM-DD)."),
    currency: str = typer.Option(DEFAULT_CURRENCY, "--currency", "-c"),
    limit: int = typer.Option(DEFAULT_LIMIT, "--limit", "-n"),
) -> None:
    """
    Search one route and store the tickets not already saved.
    """
    configure_logging()
    _require_config()

    params = SearchParams(
        origin=origin,
        destination=destination,
        departDateMin=depart_min,
        departDateMax=depart_max,
        returnDateMin=return_min,
        returnDateMax=return_max,
        currency=currency,
        limit=limit,
    )

    try:
        with store_scope() as store:
            store.ping()
            store.create_schema()
            with store.session() as db:
                outcome = search_and_store(db, params)
    except TrackerError as e:
        logger.error("[cli] search failed: %s: %s", type(e).__name__, e)
        typer.echo(f"Search failed: {e}", err=True)
        raise typer.Exit(code=1)

    _print_outcome(outcome, params.effective_currency())


@app.command("init-db")
def init_db() -> None:
    """
    Create the tickets table if it does not exist.
    """
    configure_logging()
    try:
        with store_scope() as store:
            store.ping()
            store.create_schema()
    except TrackerError as e:
        typer.echo(f"init-db failed: {e}", err=True)
        raise typer.Exit(code=1)
    typer.echo("Tickets table ready.")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Defaults to $PORT or 3000."),
) -> None:
    """
    Run the HTTP API. Ctrl+C shuts down gracefully and closes the store.
    """
    import uvicorn

    configure_logging()
    uvicorn.run("main:app", host=host, port=port or PORT)


def main() -> None:
    app()


if __name__ == "__main__":
    main()

import logging
import sys
from pathlib import Path
from typing import Optional

import structlog
import typer

from config import Settings, get_settings, get_settings_for_environment
from exceptions import TransactionApplyError, TransactionDecodeError
from services import get_transaction_service
from storage import read_transactions, write_accounts

logger = structlog.get_logger()

EXIT_OK = 0
EXIT_INPUT_ERROR = 1
EXIT_APPLY_ERROR = 2


def configure_logging(settings: Settings) -> None:
    """Send structured logs to stderr; stdout carries the balances table."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=settings.log_level.upper(),
        force=True,
    )

    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


app = typer.Typer(
    add_completion=False,
    help=(
        "Batch payments engine. Reads a CSV of transactions (type, client, tx, amount) "
        "and prints the resulting balance of every client account as CSV."
    ),
)


@app.command()
def run(
    input_csv: Path = typer.Argument(
        ...,
        help="CSV file containing the list of transactions",
        dir_okay=False,
    ),
    env: Optional[str] = typer.Option(
        None,
        "--env",
        help="Settings profile: development, production or testing (defaults to environment variables).",
    ),
) -> None:
    """Process INPUT_CSV and write client balances to stdout."""
    settings = get_settings_for_environment(env) if env else get_settings()
    configure_logging(settings)

    if not input_csv.exists():
        logger.error("Input file not found", path=str(input_csv))
        typer.echo(f"ERROR: CSV file does not exist: {input_csv}", err=True)
        raise typer.Exit(EXIT_INPUT_ERROR)

    logger.info("Starting payments run", app=settings.app_name, version=settings.app_version, path=str(input_csv))

    service = get_transaction_service(check_invariants=settings.check_invariants)
    exit_code = EXIT_OK

    try:
        service.process(read_transactions(input_csv))
    except TransactionDecodeError as e:
        typer.echo(f"ERROR: Reading or decoding transaction: {e}", err=True)
        raise typer.Exit(EXIT_INPUT_ERROR)
    except TransactionApplyError as e:
        # The run stops here; balances accumulated so far are still reported
        typer.echo(f"ERROR: {e}", err=True)
        exit_code = EXIT_APPLY_ERROR

    rows = write_accounts(
        service.accounts(),
        sys.stdout,
        sort=settings.sort_output,
    )
    sys.stdout.flush()
    logger.info("Balances written", accounts=rows, exit_code=exit_code)

    if exit_code != EXIT_OK:
        raise typer.Exit(exit_code)


if __name__ == "__main__":
    app()

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional
import structlog

from channel import CommandChannel
from config import Settings, get_settings, get_settings_for_environment
from exceptions import LedgerError
from repositories import AccountRepository, InMemoryAccountRepository
from services import DispatchSummary, get_command_dispatcher
from transactions_csv import parse_csv, write_csv

logger = structlog.get_logger()


def configure_logging(settings: Settings) -> None:
    """Configure structured logging; stdout is reserved for the account snapshot."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, settings.log_level.upper(), logging.WARNING),
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


async def process_file(
    path: str,
    account_repo: AccountRepository,
    queue_size: int = 16
) -> DispatchSummary:
    """Run the producer and the dispatcher concurrently until the file is drained."""
    channel = CommandChannel(maxsize=queue_size)
    dispatcher = get_command_dispatcher(account_repo)

    producer = asyncio.create_task(parse_csv(path, channel))
    consumer = asyncio.create_task(dispatcher.run(channel))

    try:
        await asyncio.gather(producer, consumer)
    except Exception:
        # Neither side can finish without the other
        for task in (producer, consumer):
            task.cancel()
        await asyncio.gather(producer, consumer, return_exceptions=True)
        raise

    return consumer.result()


async def run(path: str, settings: Settings, out=None) -> DispatchSummary:
    account_repo = InMemoryAccountRepository()

    summary = await process_file(path, account_repo, settings.queue_size)
    await write_csv(account_repo, out or sys.stdout, settings.decimal_places)

    return summary


def load_settings(env: Optional[str] = None) -> Settings:
    """Settings for the named environment profile, or the cached defaults."""
    if env:
        return get_settings_for_environment(env)
    return get_settings()


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="payments-ledger",
        description="Apply a CSV of transactions to client accounts and print the final balances.",
    )
    parser.add_argument("path", nargs="?", help="Path to the transactions CSV file")
    parser.add_argument(
        "--env",
        default=os.getenv("LEDGER_ENV"),
        help="Settings profile (development, production, testing)",
    )
    parser.add_argument("--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)")
    parser.add_argument("--log-format", choices=["json", "text"], help="Diagnostic log format")
    parser.add_argument("--queue-size", type=int, help="Capacity of the command channel")
    parser.add_argument(
        "--version",
        action="version",
        version=f"{settings.app_name} {settings.app_version}",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    overrides = {
        key: value
        for key, value in (
            ("log_level", args.log_level),
            ("log_format", args.log_format),
            ("queue_size", args.queue_size),
        )
        if value is not None
    }
    settings = load_settings(args.env).model_copy(update=overrides)
    configure_logging(settings)

    if not args.path:
        logger.error(
            "A file path for the transactions csv file is required. "
            "Example: `payments-ledger transactions.csv`"
        )
        return 1

    try:
        asyncio.run(run(args.path, settings))
    except LedgerError as e:
        logger.error("Processing aborted", error=str(e), exc_info=True)
        return 1

    return 0


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()

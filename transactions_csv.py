"""CSV transport: reads commands into the channel and writes the account snapshot."""

import asyncio
import csv
from pathlib import Path
from typing import IO, Iterator, Union
from pydantic import ValidationError
import structlog

from channel import CommandChannel
from exceptions import CommandStreamError
from models import AMOUNT_PLACES, Command
from repositories import AccountRepository

logger = structlog.get_logger()

INPUT_FIELDS = ("type", "client", "tx", "amount")
OUTPUT_HEADERS = ("client", "available", "held", "total", "locked")


def read_commands(path: Union[str, Path]) -> Iterator[Command]:
    """Yield commands from a transactions CSV in file order.

    Cells are whitespace-trimmed and rows may leave out the trailing amount.
    Raises CommandStreamError if the file cannot be read or a row is invalid.
    """
    try:
        handle = open(path, newline="", encoding="utf-8")
    except OSError as e:
        raise CommandStreamError(f"Opening {path} failed: {e}") from e

    with handle:
        reader = csv.reader(handle)
        try:
            header = next(reader, None)
            if header is None:
                return
            columns = [name.strip() for name in header]
            for row in reader:
                if not any(cell.strip() for cell in row):
                    continue
                yield _parse_row(columns, row, reader.line_num, path)
        except (csv.Error, UnicodeDecodeError) as e:
            raise CommandStreamError(f"Reading {path} failed: {e}") from e


def _parse_row(columns, row, line_num, path) -> Command:
    record = {
        name: cell.strip()
        for name, cell in zip(columns, row)
        if name in INPUT_FIELDS
    }
    try:
        return Command(**record)
    except ValidationError as e:
        raise CommandStreamError(
            f"Getting a command from {path} failed at line {line_num}: {e}"
        ) from e


async def parse_csv(path: Union[str, Path], channel: CommandChannel) -> int:
    """Producer task: feed every command of the file into the channel, then close it."""
    sent = 0
    commands = read_commands(path)
    try:
        while True:
            command = await asyncio.to_thread(next, commands, None)
            if command is None:
                break
            await channel.send(command)
            sent += 1
    except Exception as e:
        logger.error("Command producer failed", path=str(path), error=str(e))
        channel.abort(e)
        raise

    channel.close()
    logger.info("Command producer finished", path=str(path), commands=sent)
    return sent


async def write_csv(account_repo: AccountRepository, stream: IO[str], places: int = AMOUNT_PLACES) -> int:
    """Write one row per account; row order follows the registry."""
    snapshots = await account_repo.snapshot(places)

    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(OUTPUT_HEADERS)
    for snapshot in snapshots:
        writer.writerow(snapshot.as_row())
    stream.flush()

    return len(snapshots)

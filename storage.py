"""CSV source and sink for the payments engine.

Input rows carry ``type, client, tx, amount`` in any column order; every
field is trimmed and ``amount`` may be blank or missing for dispute steps.
Output rows carry ``client, available, held, total, locked``.
"""

import csv
import os
from typing import IO, Iterator, Mapping, Union

from pydantic import ValidationError

from models import Account, AccountRow, TransactionRecord
from exceptions import TransactionDecodeError

INPUT_COLUMNS = ("type", "client", "tx", "amount")
REQUIRED_INPUT_COLUMNS = ("type", "client", "tx")
OUTPUT_COLUMNS = ("client", "available", "held", "total", "locked")


def _describe(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        parts.append(f"{location}: {item['msg']}" if location else item["msg"])
    return "; ".join(parts)


def _read_rows(stream: IO[str]) -> Iterator[TransactionRecord]:
    reader = csv.reader(stream)
    try:
        header = next(reader, None)
        if header is None:
            raise TransactionDecodeError("missing header row", line=1)

        fieldnames = [name.strip() for name in header]
        missing = [name for name in REQUIRED_INPUT_COLUMNS if name not in fieldnames]
        if missing:
            raise TransactionDecodeError(
                f"missing column(s): {', '.join(missing)}", line=reader.line_num
            )

        for row in reader:
            if not any(field.strip() for field in row):
                continue
            if len(row) > len(fieldnames):
                raise TransactionDecodeError(
                    f"expected at most {len(fieldnames)} fields, found {len(row)}",
                    line=reader.line_num,
                )
            values = {
                name: value.strip()
                for name, value in zip(fieldnames, row)
                if name in INPUT_COLUMNS
            }
            try:
                record = TransactionRecord.model_validate(values)
            except ValidationError as e:
                raise TransactionDecodeError(_describe(e), line=reader.line_num) from e
            yield record
    except (csv.Error, UnicodeDecodeError) as e:
        raise TransactionDecodeError(str(e), line=reader.line_num) from e


def read_transactions(source: Union[str, os.PathLike, IO[str]]) -> Iterator[TransactionRecord]:
    """Lazily yield transaction records from a CSV path or open text stream.

    Raises TransactionDecodeError on the first row that cannot be decoded.
    Rows before it have already been yielded.
    """
    if isinstance(source, (str, os.PathLike)):
        with open(source, newline="", encoding="utf-8-sig") as f:
            yield from _read_rows(f)
    else:
        yield from _read_rows(source)


def write_accounts(
    accounts: Mapping[int, Account],
    stream: IO[str],
    sort: bool = True,
) -> int:
    """Write the balances table and return the number of account rows."""
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(OUTPUT_COLUMNS)

    ordered = sorted(accounts.values(), key=lambda a: a.client) if sort else accounts.values()
    count = 0
    for account in ordered:
        row = AccountRow.from_account(account)
        writer.writerow([row.client, row.available, row.held, row.total, row.locked])
        count += 1
    return count

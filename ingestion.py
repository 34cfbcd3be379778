"""CSV ingestion of transaction records.

Input looks like::

    type,       client, tx, amount
    deposit,         1,  1,    1.0
    dispute,         1,  1,

Headers and cells are trimmed, and rows may leave out the trailing amount column.
"""
import csv
from pathlib import Path
from typing import IO, Iterator, List, Literal, Union

import structlog
from pydantic import ValidationError

from models import TransactionRecord

logger = structlog.get_logger()

REQUIRED_COLUMNS = ("type", "client", "tx")

MalformedRowPolicy = Literal["skip", "fail"]


class IngestionError(Exception):
    pass


class MalformedRecordError(IngestionError):
    def __init__(self, line_number: int, row: List[str], reason: str):
        self.line_number = line_number
        self.row = row
        self.reason = reason
        super().__init__(f"line {line_number}: {reason} (row: {','.join(row)!r})")


def _undecodable(cells: List[str]) -> bool:
    try:
        for cell in cells:
            cell.encode("utf-8")
    except UnicodeEncodeError:
        return True
    return False


def _printable(cells: List[str]) -> List[str]:
    return [cell.encode("utf-8", "surrogateescape").decode("utf-8", "replace") for cell in cells]


def _rows(reader) -> Iterator[List[str]]:
    """Iterate the reader, turning decoding and CSV syntax failures into IngestionError."""
    while True:
        try:
            row = next(reader)
        except StopIteration:
            return
        except csv.Error as e:
            raise IngestionError(f"line {reader.line_num}: invalid CSV: {e}") from e
        except UnicodeDecodeError as e:
            raise IngestionError(f"line {reader.line_num + 1}: input is not valid UTF-8: {e.reason}") from e
        yield row


def _describe(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        field = ".".join(str(loc) for loc in item["loc"]) or "row"
        parts.append(f"{field}: {item['msg']}")
    return "; ".join(parts)


def read_transactions(
    source: IO[str],
    on_malformed: MalformedRowPolicy = "skip"
) -> Iterator[TransactionRecord]:
    """Yield records from a CSV text stream, in file order.

    With ``on_malformed="skip"`` a bad row is logged and left out; with ``"fail"`` it
    raises :class:`MalformedRecordError`.
    """
    if on_malformed not in ("skip", "fail"):
        raise ValueError(f"Unknown malformed row policy: {on_malformed}")

    reader = csv.reader(source)
    rows = _rows(reader)
    try:
        header = next(rows)
    except StopIteration:
        raise IngestionError("input is empty, expected a header row")

    columns = [name.strip().lower() for name in header]
    missing = [name for name in REQUIRED_COLUMNS if name not in columns]
    if missing:
        raise IngestionError(f"header is missing required columns: {', '.join(missing)}")

    skipped = 0
    for row in rows:
        cells = [cell.strip() for cell in row]
        if not any(cells):
            continue

        if _undecodable(cells):
            error = MalformedRecordError(reader.line_num, _printable(cells), "invalid UTF-8 bytes")
        elif len(cells) > len(columns):
            error = MalformedRecordError(
                reader.line_num, cells, f"expected at most {len(columns)} fields, got {len(cells)}"
            )
        else:
            fields = {name: value for name, value in zip(columns, cells) if value}
            try:
                yield TransactionRecord.model_validate(fields)
                continue
            except ValidationError as e:
                error = MalformedRecordError(reader.line_num, cells, _describe(e))

        if on_malformed == "fail":
            raise error

        skipped += 1
        logger.warning(
            "Skipping malformed transaction row",
            line=error.line_number,
            reason=error.reason,
            row=error.row
        )

    if skipped:
        logger.info("Malformed rows skipped", count=skipped)


def load_transactions_file(
    path: Union[str, Path],
    on_malformed: MalformedRowPolicy = "skip"
) -> Iterator[TransactionRecord]:
    """Open ``path`` and yield its records. The file stays open until the iterator is exhausted."""
    try:
        handle = open(path, newline="", encoding="utf-8", errors="surrogateescape")
    except OSError as e:
        raise IngestionError(f"cannot open {path}: {e.strerror or e}") from e

    with handle:
        yield from read_transactions(handle, on_malformed=on_malformed)

import csv
import io
from decimal import Decimal, ROUND_HALF_EVEN, localcontext
from typing import IO, Iterable

from models import AccountSnapshot

FIELDNAMES = ["client", "available", "held", "total", "locked"]


def _quantize(value: Decimal, precision: int) -> str:
    exponent = Decimal(1).scaleb(-precision)
    with localcontext() as ctx:
        # quantize needs room for every integer digit plus the fractional places
        ctx.prec = max(ctx.prec, value.adjusted() + precision + 2)
        return str(value.quantize(exponent, rounding=ROUND_HALF_EVEN))


def write_accounts_csv(
    snapshots: Iterable[AccountSnapshot],
    stream: IO[str],
    precision: int = 4
) -> None:
    """Write one row per client, ordered by client id."""
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(FIELDNAMES)
    for snapshot in sorted(snapshots, key=lambda s: s.client):
        writer.writerow([
            snapshot.client,
            _quantize(snapshot.available, precision),
            _quantize(snapshot.held, precision),
            _quantize(snapshot.total, precision),
            str(snapshot.locked).lower(),
        ])


def format_accounts_csv(snapshots: Iterable[AccountSnapshot], precision: int = 4) -> str:
    buffer = io.StringIO()
    write_accounts_csv(snapshots, buffer, precision=precision)
    return buffer.getvalue()

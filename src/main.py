import csv
import logging
import os
import sys
from decimal import Decimal, localcontext
from typing import Iterable, List, Optional, TextIO

from csv_source import RecordParseError
from models import AccountSnapshot
from payments_engine import PaymentsEngine

OUTPUT_PLACES = Decimal("0.0001")
# Room for a full 28-digit balance plus the four padded places.
OUTPUT_PRECISION = 40

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "WARNING").upper(),
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def format_decimal(value: Decimal) -> str:
    """Format decimal with up to 4 decimal places, removing trailing zeros."""
    with localcontext() as ctx:
        ctx.prec = OUTPUT_PRECISION
        normalized = value.quantize(OUTPUT_PLACES).normalize()
    return f"{normalized:f}"


def write_accounts(accounts: Iterable[AccountSnapshot], stream: TextIO) -> None:
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(["client", "available", "held", "total", "locked"])
    for account in accounts:
        writer.writerow([
            account.client_id,
            format_decimal(account.available),
            format_decimal(account.held),
            format_decimal(account.total),
            str(account.locked).lower(),
        ])


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 1:
        print("Usage: python main.py <input.csv>", file=sys.stderr)
        return 1

    configure_logging()

    filepath = argv[0]
    engine = PaymentsEngine()
    try:
        accounts = engine.process_file(filepath)
    except (OSError, RecordParseError) as e:
        logger.error(f"Failed to process {filepath}: {e}")
        return 1

    write_accounts(accounts, sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())

import csv
import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterator, Optional, TextIO

from models import Transaction, TransactionType

logger = logging.getLogger(__name__)

MAX_CLIENT_ID = 65535
MAX_TRANSACTION_ID = 4294967295
MAX_AMOUNT_PLACES = 4
# Keeps a single amount within 25 significant digits, leaving headroom below the
# 28-digit balance precision for sums.
MAX_AMOUNT = Decimal("100000000000000000000")

AMOUNT_TYPES = {TransactionType.DEPOSIT, TransactionType.WITHDRAWAL}


class RecordParseError(ValueError):
    """A CSV row could not be turned into a Transaction."""

    def __init__(self, line_number: int, message: str):
        super().__init__(f"line {line_number}: {message}")
        self.line_number = line_number


def read_transactions_file(filepath: str) -> Iterator[Transaction]:
    """Lazily yield transactions from a CSV file."""
    with open(filepath, "r", newline="") as f:
        yield from read_transactions(f)


def read_transactions(stream: TextIO) -> Iterator[Transaction]:
    """
    Lazily yield transactions from CSV text with a `type, client, tx, amount`
    header. Stops at the first malformed row by raising RecordParseError.
    """
    reader = csv.DictReader(stream)
    for row in reader:
        yield parse_row(row, reader.line_num)


def parse_row(row: Dict[Optional[str], Optional[str]], line_number: int = 0) -> Transaction:
    """Parse CSV row into Transaction."""
    normalized = {
        key.strip(): (value or "").strip()
        for key, value in row.items()
        if key is not None
    }

    try:
        transaction_type = TransactionType(normalized.get("type", "").lower())
    except ValueError:
        raise RecordParseError(line_number, f"unknown transaction type {normalized.get('type')!r}") from None

    client_id = _parse_id(normalized, "client", MAX_CLIENT_ID, line_number)
    transaction_id = _parse_id(normalized, "tx", MAX_TRANSACTION_ID, line_number)

    amount = None
    if transaction_type in AMOUNT_TYPES:
        amount = _parse_amount(normalized.get("amount", ""), line_number)

    transaction = Transaction(
        transaction_type=transaction_type,
        client_id=client_id,
        transaction_id=transaction_id,
        amount=amount,
    )
    logger.debug(f"Parsed line {line_number}: {transaction}")
    return transaction


def _parse_id(normalized: Dict[str, str], column: str, upper: int, line_number: int) -> int:
    raw = normalized.get(column, "")
    try:
        value = int(raw)
    except ValueError:
        raise RecordParseError(line_number, f"invalid {column} {raw!r}") from None
    if not 0 <= value <= upper:
        raise RecordParseError(line_number, f"{column} {value} out of range 0..{upper}")
    return value


def _parse_amount(raw: str, line_number: int) -> Decimal:
    if not raw:
        raise RecordParseError(line_number, "missing amount")
    try:
        amount = Decimal(raw)
    except InvalidOperation:
        raise RecordParseError(line_number, f"invalid amount {raw!r}") from None
    if not amount.is_finite() or amount <= 0:
        raise RecordParseError(line_number, f"amount must be positive, got {raw!r}")
    if amount > MAX_AMOUNT:
        raise RecordParseError(line_number, f"amount {raw!r} exceeds {MAX_AMOUNT:f}")
    if -amount.as_tuple().exponent > MAX_AMOUNT_PLACES:
        raise RecordParseError(line_number, f"amount {raw!r} has more than {MAX_AMOUNT_PLACES} decimal places")
    return amount

from collections import Counter
from dataclasses import dataclass, field
from decimal import Context, Decimal, DivisionByZero, Inexact, InvalidOperation, Overflow, localcontext
from enum import Enum
from typing import Optional


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"


class DisputeState(Enum):
    NORMAL = "normal"
    DISPUTED = "disputed"
    CHARGED_BACK = "charged_back"


class ApplyError(Enum):
    """Why a record was skipped. Returned by the ledger, never raised."""

    DUPLICATE_TRANSACTION_ID = "duplicate_transaction_id"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    UNKNOWN_TRANSACTION = "unknown_transaction"
    CLIENT_MISMATCH = "client_mismatch"
    INVALID_STATE_TRANSITION = "invalid_state_transition"
    ACCOUNT_LOCKED = "account_locked"
    BALANCE_OVERFLOW = "balance_overflow"


class LedgerInvariantError(RuntimeError):
    """Raised when an account's stored total drifts from available + held."""


class BalanceOverflowError(ArithmeticError):
    """Raised when a balance change cannot be represented without rounding."""


ZERO = Decimal("0")

# Every balance change must be exact; anything that would round is trapped.
BALANCE_CONTEXT = Context(prec=28, traps=[InvalidOperation, DivisionByZero, Overflow, Inexact])


@dataclass(frozen=True)
class Transaction:
    transaction_type: TransactionType
    client_id: int
    transaction_id: int
    amount: Optional[Decimal] = None

    def __repr__(self) -> str:
        return f"Transaction({self.transaction_type.value}, client={self.client_id}, tx={self.transaction_id}, amount={self.amount})"


@dataclass
class DisputableTransaction:
    """A retained deposit that dispute, resolve and chargeback can refer to."""

    transaction_id: int
    client_id: int
    amount: Decimal
    state: DisputeState = DisputeState.NORMAL


@dataclass(frozen=True)
class AccountSnapshot:
    client_id: int
    available: Decimal
    held: Decimal
    total: Decimal
    locked: bool
    transaction_count: int = 0


@dataclass
class ClientAccount:
    client_id: int
    available: Decimal = Decimal("0")
    held: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    locked: bool = False
    transaction_count: int = 0

    def credit(self, amount: Decimal) -> None:
        self._move(available=amount, total=amount)

    def debit(self, amount: Decimal) -> None:
        self._move(available=-amount, total=-amount)

    def hold(self, amount: Decimal) -> None:
        self._move(available=-amount, held=amount)

    def release_hold(self, amount: Decimal) -> None:
        self._move(available=amount, held=-amount)

    def remove_held(self, amount: Decimal) -> None:
        self._move(held=-amount, total=-amount)

    def lock(self) -> None:
        self.locked = True

    def snapshot(self) -> AccountSnapshot:
        return AccountSnapshot(
            client_id=self.client_id,
            available=self.available,
            held=self.held,
            total=self.total,
            locked=self.locked,
            transaction_count=self.transaction_count,
        )

    def _move(self, available: Decimal = ZERO, held: Decimal = ZERO, total: Decimal = ZERO) -> None:
        """Apply balance deltas exactly, or leave the account untouched."""
        try:
            with localcontext(BALANCE_CONTEXT):
                new_available = self.available + available
                new_held = self.held + held
                new_total = self.total + total
        except Inexact:
            raise BalanceOverflowError(
                f"Client {self.client_id}: balance exceeds {BALANCE_CONTEXT.prec} significant digits"
            ) from None

        self.available = new_available
        self.held = new_held
        self.total = new_total
        self._verify()

    def _verify(self) -> None:
        if self.total != self.available + self.held:
            raise LedgerInvariantError(
                f"Client {self.client_id}: total {self.total} != available {self.available} + held {self.held}"
            )


@dataclass
class ProcessingStats:
    """Counters for a single run through the ledger."""

    processed: int = 0
    failed: int = 0
    failures_by_error: Counter = field(default_factory=Counter)

    def record_success(self) -> None:
        self.processed += 1

    def record_failure(self, error: ApplyError) -> None:
        self.failed += 1
        self.failures_by_error[error] += 1

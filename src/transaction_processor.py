import logging
from typing import List, Optional, Tuple

from models import (
    AccountSnapshot,
    ApplyError,
    BalanceOverflowError,
    ClientAccount,
    DisputableTransaction,
    DisputeState,
    Transaction,
    TransactionType,
)
from state_manager import StateManager

logger = logging.getLogger(__name__)


class TransactionProcessor:
    """
    Applies transactions to per-client accounts in arrival order.

    apply() returns None when the record was applied, or the ApplyError that
    caused it to be skipped. A skipped record leaves every balance untouched.

    Locked accounts are not rejected unless enforce_locks is set: a chargeback
    only flags the account. The check lives in _rejects_locked().
    """

    def __init__(self, enforce_locks: bool = False):
        self._state = StateManager()
        self._enforce_locks = enforce_locks

    def apply(self, transaction: Transaction) -> Optional[ApplyError]:
        try:
            return self._dispatch(transaction)
        except BalanceOverflowError as e:
            logger.error(f"{transaction}: {e}")
            return ApplyError.BALANCE_OVERFLOW

    def _dispatch(self, transaction: Transaction) -> Optional[ApplyError]:
        match transaction.transaction_type:
            case TransactionType.DEPOSIT:
                return self._handle_deposit(transaction)
            case TransactionType.WITHDRAWAL:
                return self._handle_withdrawal(transaction)
            case TransactionType.DISPUTE:
                return self._handle_dispute(transaction)
            case TransactionType.RESOLVE:
                return self._handle_resolve(transaction)
            case TransactionType.CHARGEBACK:
                return self._handle_chargeback(transaction)
            case _:
                raise ValueError(f"Unsupported transaction type: {transaction.transaction_type}")

    def snapshot(self) -> List[AccountSnapshot]:
        """Copies of every account, ordered by client id."""
        return self._state.snapshot_accounts()

    def _rejects_locked(self, account: Optional[ClientAccount]) -> bool:
        return self._enforce_locks and account is not None and account.locked

    def _handle_deposit(self, transaction: Transaction) -> Optional[ApplyError]:
        if self._state.has_transaction(transaction.transaction_id):
            logger.warning(f"Deposit tx {transaction.transaction_id}: transaction id already used, skipping")
            return ApplyError.DUPLICATE_TRANSACTION_ID

        if self._rejects_locked(self._state.get_account(transaction.client_id)):
            logger.warning(f"Deposit tx {transaction.transaction_id}: client {transaction.client_id} is locked")
            return ApplyError.ACCOUNT_LOCKED

        account = self._state.get_or_create_account(transaction.client_id)
        account.credit(transaction.amount)
        self._state.store_transaction(
            DisputableTransaction(
                transaction_id=transaction.transaction_id,
                client_id=transaction.client_id,
                amount=transaction.amount,
            )
        )
        return self._applied(account, transaction)

    def _handle_withdrawal(self, transaction: Transaction) -> Optional[ApplyError]:
        account = self._state.get_or_create_account(transaction.client_id)

        if self._rejects_locked(account):
            logger.warning(f"Withdrawal tx {transaction.transaction_id}: client {transaction.client_id} is locked")
            return ApplyError.ACCOUNT_LOCKED

        if account.available < transaction.amount:
            logger.warning(
                f"Withdrawal tx {transaction.transaction_id}: insufficient funds "
                f"({account.available} < {transaction.amount})"
            )
            return ApplyError.INSUFFICIENT_FUNDS

        account.debit(transaction.amount)
        return self._applied(account, transaction)

    def _handle_dispute(self, transaction: Transaction) -> Optional[ApplyError]:
        original, error = self._find_original(transaction, DisputeState.NORMAL)
        if error is not None:
            return error

        account = self._state.get_account(original.client_id)
        account.hold(original.amount)
        original.state = DisputeState.DISPUTED
        return self._applied(account, transaction)

    def _handle_resolve(self, transaction: Transaction) -> Optional[ApplyError]:
        original, error = self._find_original(transaction, DisputeState.DISPUTED)
        if error is not None:
            return error

        account = self._state.get_account(original.client_id)
        account.release_hold(original.amount)
        original.state = DisputeState.NORMAL
        return self._applied(account, transaction)

    def _handle_chargeback(self, transaction: Transaction) -> Optional[ApplyError]:
        original, error = self._find_original(transaction, DisputeState.DISPUTED)
        if error is not None:
            return error

        account = self._state.get_account(original.client_id)
        account.remove_held(original.amount)
        account.lock()
        original.state = DisputeState.CHARGED_BACK
        return self._applied(account, transaction)

    def _find_original(
        self, transaction: Transaction, required_state: DisputeState
    ) -> Tuple[Optional[DisputableTransaction], Optional[ApplyError]]:
        """
        Look up the deposit a dispute, resolve or chargeback refers to and check
        it may move out of required_state. Returns (original, None) on success
        and (None, error) otherwise.
        """
        kind = transaction.transaction_type.value.capitalize()
        original = self._state.get_transaction(transaction.transaction_id)

        if original is None:
            logger.warning(f"{kind} for tx {transaction.transaction_id}: transaction not found")
            return None, ApplyError.UNKNOWN_TRANSACTION

        if original.client_id != transaction.client_id:
            logger.error(
                f"{kind} for tx {transaction.transaction_id}: client mismatch "
                f"(expected {original.client_id}, got {transaction.client_id})"
            )
            return None, ApplyError.CLIENT_MISMATCH

        if self._rejects_locked(self._state.get_account(original.client_id)):
            logger.warning(f"{kind} for tx {transaction.transaction_id}: client {original.client_id} is locked")
            return None, ApplyError.ACCOUNT_LOCKED

        if original.state != required_state:
            logger.warning(
                f"{kind} for tx {transaction.transaction_id}: transaction is {original.state.value}, "
                f"expected {required_state.value}"
            )
            return None, ApplyError.INVALID_STATE_TRANSITION

        return original, None

    def _applied(self, account: ClientAccount, transaction: Transaction) -> Optional[ApplyError]:
        account.transaction_count += 1
        logger.debug(f"Applied {transaction}; account now {account}")
        return None

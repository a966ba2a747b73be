from typing import Dict, List, Optional

from models import AccountSnapshot, ClientAccount, DisputableTransaction


class StateManager:
    """
    Owns client accounts and the retained deposits used for dispute lookups.
    Nothing outside the ledger gets a reference to these entries; readers get
    copies through snapshot_accounts().
    """

    def __init__(self):
        self._accounts: Dict[int, ClientAccount] = {}
        # Only deposits are retained; withdrawals are applied and forgotten.
        self._disputable_transactions: Dict[int, DisputableTransaction] = {}

    def get_account(self, client_id: int) -> Optional[ClientAccount]:
        """Return the account for a client, or None if it was never created."""
        return self._accounts.get(client_id)

    def get_or_create_account(self, client_id: int) -> ClientAccount:
        """Get existing account or create new one."""
        if client_id not in self._accounts:
            self._accounts[client_id] = ClientAccount(client_id=client_id)
        return self._accounts[client_id]

    def store_transaction(self, transaction: DisputableTransaction) -> None:
        """Store a deposit for future dispute lookups."""
        self._disputable_transactions[transaction.transaction_id] = transaction

    def get_transaction(self, transaction_id: int) -> Optional[DisputableTransaction]:
        """Retrieve a stored deposit by ID."""
        return self._disputable_transactions.get(transaction_id)

    def has_transaction(self, transaction_id: int) -> bool:
        return transaction_id in self._disputable_transactions

    def snapshot_accounts(self) -> List[AccountSnapshot]:
        """Return immutable copies of all accounts, ordered by client id."""
        return [self._accounts[client_id].snapshot() for client_id in sorted(self._accounts)]

    def account_count(self) -> int:
        return len(self._accounts)

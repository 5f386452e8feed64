from typing import Dict, Optional

from ledger import Ledger
from models import Transaction, ClientAccount


class StateManager:
    """
    In-memory state for one run: client accounts and the ledger used for dispute lookups.
    Not thread-safe; owned by a single engine.
    """

    def __init__(self):
        self._accounts: Dict[int, ClientAccount] = {}
        self.ledger = Ledger()

    def get_account(self, client_id: int) -> Optional[ClientAccount]:
        """Return the live account, or None if the client has never deposited."""
        return self._accounts.get(client_id)

    def add_account(self, account: ClientAccount) -> None:
        """Register an account opened by a successful deposit. Existing accounts are kept."""
        self._accounts.setdefault(account.client_id, account)

    def store_transaction(self, transaction: Transaction) -> None:
        """Store transaction for future dispute lookups."""
        self.ledger.store_transaction(transaction)

    def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        """Retrieve stored transaction by ID."""
        return self.ledger.get_transaction(transaction_id)

    def has_transaction(self, transaction_id: int) -> bool:
        return transaction_id in self.ledger

    def get_all_accounts(self) -> Dict[int, ClientAccount]:
        """Return all accounts (for final output)."""
        return dict(self._accounts)

from typing import Dict, Iterator, Optional

from models import Transaction


class Ledger:
    """
    Transaction log for dispute lookups.
    Holds every deposit and withdrawal that was successfully applied, keyed by transaction id.
    """

    def __init__(self):
        self._transactions: Dict[int, Transaction] = {}

    def store_transaction(self, transaction: Transaction) -> None:
        """Store an applied transaction. Ids are never overwritten."""
        if transaction.transaction_id in self._transactions:
            raise KeyError(f"Transaction {transaction.transaction_id} is already in the ledger")
        self._transactions[transaction.transaction_id] = transaction

    def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        """Retrieve stored transaction by ID."""
        return self._transactions.get(transaction_id)

    def __contains__(self, transaction_id: object) -> bool:
        return transaction_id in self._transactions

    def __len__(self) -> int:
        return len(self._transactions)

    def __iter__(self) -> Iterator[Transaction]:
        return iter(self._transactions.values())

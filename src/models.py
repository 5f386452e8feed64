from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from balance import Balance


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"

    @property
    def carries_amount(self) -> bool:
        return self in (TransactionType.DEPOSIT, TransactionType.WITHDRAWAL)


class TransactionState(Enum):
    """
    Processing state of a transaction.

    Deposits move NEW -> SUCCESS -> DISPUTED -> SUCCESS (resolve) or CHARGED_BACK.
    Withdrawals only ever reach SUCCESS.
    """

    NEW = "new"
    SUCCESS = "success"
    DISPUTED = "disputed"
    CHARGED_BACK = "charged_back"


@dataclass
class Transaction:
    transaction_type: TransactionType
    client_id: int
    transaction_id: int
    amount: Optional[Balance] = None
    state: TransactionState = TransactionState.NEW

    def __repr__(self) -> str:
        return (
            f"Transaction({self.transaction_type.value}, client={self.client_id}, "
            f"tx={self.transaction_id}, amount={self.amount}, state={self.state.value})"
        )

    def __str__(self) -> str:
        description = f"{self.transaction_type.value} (client: {self.client_id}, tx: {self.transaction_id}"
        if self.amount is not None:
            description += f", amount: {self.amount}"
        return description + ")"


@dataclass
class ClientAccount:
    """
    Balances of one client.

    Every balance move computes all new values before assigning any of them,
    so an InvalidBalanceError leaves the account untouched.
    """

    client_id: int
    available: Balance = field(default_factory=Balance.zero)
    held: Balance = field(default_factory=Balance.zero)
    locked: bool = False

    @property
    def total(self) -> Balance:
        return self.available.add(self.held)

    def credit(self, amount: Balance) -> None:
        self.available = self.available.add(amount)

    def debit(self, amount: Balance) -> None:
        self.available = self.available.subtract(amount)

    def hold(self, amount: Balance) -> None:
        available = self.available.subtract(amount)
        held = self.held.add(amount)
        self.available, self.held = available, held

    def release_hold(self, amount: Balance) -> None:
        held = self.held.subtract(amount)
        available = self.available.add(amount)
        self.available, self.held = available, held

    def remove_held(self, amount: Balance) -> None:
        self.held = self.held.subtract(amount)

    def lock(self) -> None:
        self.locked = True


class ProcessingStats:
    """Counters for the end-of-run summary."""

    def __init__(self):
        self.processed = 0
        self.failed = 0
        self.parse_failed = 0
        self.errors_by_type: Counter = Counter()

    def record_success(self):
        self.processed += 1

    def record_failure(self, error: Exception):
        self.failed += 1
        self.errors_by_type[type(error).__name__] += 1

    def record_parse_failure(self, error: Exception):
        self.parse_failed += 1
        self.errors_by_type[type(error).__name__] += 1

    def summary(self) -> str:
        return f"Processed: {self.processed}, Failed: {self.failed}, Unparseable: {self.parse_failed}"

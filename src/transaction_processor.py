import logging
from contextlib import contextmanager
from typing import Iterator

from balance import InvalidBalanceError
from errors import (
    AccountLockedError,
    BalanceInvariantViolationError,
    BalanceUpdateError,
    DuplicateTransactionError,
    InsufficientFundsError,
    NoClientError,
    ReferencesNonExistingError,
    ShouldBeDepositError,
    WrongClientError,
    WrongTransactionStateError,
)
from models import Transaction, TransactionType, TransactionState, ClientAccount
from state_manager import StateManager

logger = logging.getLogger(__name__)


class TransactionProcessor:
    """
    Applies single transactions to state.

    Every rule is checked before any balance moves, so a transaction either
    applies completely or raises a RejectedTransactionError having changed nothing.
    """

    def __init__(self, state: StateManager):
        self._state = state

    def process_transaction(self, transaction: Transaction) -> None:
        """
        Process a single transaction.

        Raises:
            RejectedTransactionError: the transaction broke a rule and was not applied.
        """
        account = self._get_account(transaction)

        # No operation shall happen on a locked account.
        if account.locked:
            raise AccountLockedError(transaction)

        match transaction.transaction_type:
            case TransactionType.DEPOSIT:
                self._handle_deposit(account, transaction)
            case TransactionType.WITHDRAWAL:
                self._handle_withdrawal(account, transaction)
            case TransactionType.DISPUTE:
                self._handle_dispute(account, transaction)
            case TransactionType.RESOLVE:
                self._handle_resolve(account, transaction)
            case TransactionType.CHARGEBACK:
                self._handle_chargeback(account, transaction)
            case _:
                raise ValueError(f"Unsupported transaction type: {transaction.transaction_type}")

    def _get_account(self, transaction: Transaction) -> ClientAccount:
        account = self._state.get_account(transaction.client_id)
        if account is not None:
            return account

        # Only a deposit can open an account. It is registered once the deposit succeeds.
        if transaction.transaction_type == TransactionType.DEPOSIT:
            return ClientAccount(client_id=transaction.client_id)

        raise NoClientError(transaction)

    def _handle_deposit(self, account: ClientAccount, transaction: Transaction) -> None:
        if self._state.has_transaction(transaction.transaction_id):
            raise DuplicateTransactionError(transaction)

        with self._balance_update(transaction):
            account.credit(transaction.amount)

        transaction.state = TransactionState.SUCCESS
        self._state.add_account(account)
        self._state.store_transaction(transaction)

    def _handle_withdrawal(self, account: ClientAccount, transaction: Transaction) -> None:
        if self._state.has_transaction(transaction.transaction_id):
            raise DuplicateTransactionError(transaction)

        if account.available < transaction.amount:
            raise InsufficientFundsError(transaction)

        with self._balance_update(transaction):
            account.debit(transaction.amount)

        transaction.state = TransactionState.SUCCESS
        self._state.store_transaction(transaction)

    def _handle_dispute(self, account: ClientAccount, transaction: Transaction) -> None:
        original = self._find_referenced_deposit(account, transaction)

        if original.state != TransactionState.SUCCESS:
            raise WrongTransactionStateError(transaction)

        # Funds the client already spent cannot be disputed; it would push available below zero.
        if account.available < original.amount:
            raise InsufficientFundsError(transaction)

        with self._balance_update(transaction):
            account.hold(original.amount)

        original.state = TransactionState.DISPUTED

    def _handle_resolve(self, account: ClientAccount, transaction: Transaction) -> None:
        original = self._find_disputed_deposit(account, transaction)

        with self._balance_update(transaction):
            account.release_hold(original.amount)

        original.state = TransactionState.SUCCESS

    def _handle_chargeback(self, account: ClientAccount, transaction: Transaction) -> None:
        original = self._find_disputed_deposit(account, transaction)

        with self._balance_update(transaction):
            account.remove_held(original.amount)

        original.state = TransactionState.CHARGED_BACK
        account.lock()
        logger.info(f"Chargeback for tx {original.transaction_id}: client {account.client_id} locked")

    def _find_referenced_deposit(self, account: ClientAccount, transaction: Transaction) -> Transaction:
        """Look up the deposit a dispute, resolve or chargeback refers to."""
        original = self._state.get_transaction(transaction.transaction_id)

        if original is None:
            raise ReferencesNonExistingError(transaction)

        if original.client_id != account.client_id:
            raise WrongClientError(transaction)

        # TODO: Withdrawal disputes (fraud claims) could be supported by recalling funds from the payee
        if original.transaction_type != TransactionType.DEPOSIT:
            raise ShouldBeDepositError(transaction)

        return original

    def _find_disputed_deposit(self, account: ClientAccount, transaction: Transaction) -> Transaction:
        original = self._find_referenced_deposit(account, transaction)

        if original.state != TransactionState.DISPUTED:
            raise WrongTransactionStateError(transaction)

        # A dispute only succeeds after moving the full amount to held, so this cannot happen
        # unless held was modified outside the processor.
        if account.held < original.amount:
            logger.error(
                f"{transaction.transaction_type.value.capitalize()} for tx {transaction.transaction_id}: "
                f"held {account.held} is less than disputed amount {original.amount} for client "
                f"{account.client_id}. This should never happen."
            )
            raise BalanceInvariantViolationError(transaction)

        return original

    @staticmethod
    @contextmanager
    def _balance_update(transaction: Transaction) -> Iterator[None]:
        """Report an invalid balance produced by an account move as a rejection of the transaction."""
        try:
            yield
        except InvalidBalanceError as e:
            raise BalanceUpdateError(transaction, e) from e

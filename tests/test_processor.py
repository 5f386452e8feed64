import sys
import os
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from balance import Balance
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
from models import Transaction, TransactionType, TransactionState
from state_manager import StateManager
from transaction_processor import TransactionProcessor


def deposit(client_id: int, transaction_id: int, amount: str) -> Transaction:
    return Transaction(TransactionType.DEPOSIT, client_id=client_id, transaction_id=transaction_id, amount=Balance(amount))


def withdrawal(client_id: int, transaction_id: int, amount: str) -> Transaction:
    return Transaction(TransactionType.WITHDRAWAL, client_id=client_id, transaction_id=transaction_id, amount=Balance(amount))


def dispute(client_id: int, transaction_id: int) -> Transaction:
    return Transaction(TransactionType.DISPUTE, client_id=client_id, transaction_id=transaction_id)


def resolve(client_id: int, transaction_id: int) -> Transaction:
    return Transaction(TransactionType.RESOLVE, client_id=client_id, transaction_id=transaction_id)


def chargeback(client_id: int, transaction_id: int) -> Transaction:
    return Transaction(TransactionType.CHARGEBACK, client_id=client_id, transaction_id=transaction_id)


class TestTransactionProcessor:
    def setup_method(self):
        self.state = StateManager()
        self.processor = TransactionProcessor(self.state)

    def account(self, client_id: int = 1):
        return self.state.get_account(client_id)

    def test_deposit(self):
        tx = deposit(1, 1, "100")
        self.processor.process_transaction(tx)

        account = self.account()
        assert account.available == Decimal("100")
        assert account.total == Decimal("100")
        assert tx.state == TransactionState.SUCCESS
        assert self.state.get_transaction(1) is tx

    def test_deposit_of_zero_is_allowed(self):
        self.processor.process_transaction(deposit(1, 1, "0"))
        assert self.account().available == Decimal("0")
        assert self.state.has_transaction(1)

    def test_duplicate_deposit_rejected(self):
        self.processor.process_transaction(deposit(1, 1, "100"))
        duplicate = deposit(1, 1, "5")

        with pytest.raises(DuplicateTransactionError) as exc_info:
            self.processor.process_transaction(duplicate)

        assert exc_info.value.transaction is duplicate
        assert duplicate.state == TransactionState.NEW
        assert self.account().available == Decimal("100")
        assert self.state.get_transaction(1).amount == Decimal("100")

    def test_rejected_deposit_does_not_open_account(self):
        self.processor.process_transaction(deposit(1, 1, "100"))

        with pytest.raises(DuplicateTransactionError):
            self.processor.process_transaction(deposit(2, 1, "5"))
        assert self.account(2) is None
        assert list(self.state.get_all_accounts()) == [1]

    def test_deposit_reusing_withdrawal_id_rejected(self):
        self.processor.process_transaction(deposit(1, 1, "10"))
        self.processor.process_transaction(withdrawal(1, 2, "4"))

        with pytest.raises(DuplicateTransactionError):
            self.processor.process_transaction(deposit(1, 2, "4"))
        assert self.account().available == Decimal("6")

    def test_withdrawal_success(self):
        self.processor.process_transaction(deposit(1, 1, "100"))
        tx = withdrawal(1, 2, "60")
        self.processor.process_transaction(tx)

        assert self.account().available == Decimal("40")
        assert tx.state == TransactionState.SUCCESS
        assert self.state.get_transaction(2) is tx

    def test_withdrawal_insufficient_funds(self):
        self.processor.process_transaction(deposit(1, 1, "50"))
        tx = withdrawal(1, 2, "100")

        with pytest.raises(InsufficientFundsError):
            self.processor.process_transaction(tx)

        assert self.account().available == Decimal("50")
        assert not self.state.has_transaction(2)

    def test_withdrawal_of_everything(self):
        self.processor.process_transaction(deposit(1, 1, "50"))
        self.processor.process_transaction(withdrawal(1, 2, "50"))
        assert self.account().available == Decimal("0")

    def test_duplicate_withdrawal_rejected(self):
        self.processor.process_transaction(deposit(1, 1, "200"))
        self.processor.process_transaction(withdrawal(1, 2, "50"))

        with pytest.raises(DuplicateTransactionError):
            self.processor.process_transaction(withdrawal(1, 2, "50"))
        assert self.account().available == Decimal("150")

    def test_withdrawal_without_client(self):
        with pytest.raises(NoClientError):
            self.processor.process_transaction(withdrawal(1, 1, "1"))
        assert self.account() is None

    @pytest.mark.parametrize("make", [dispute, resolve, chargeback])
    def test_reference_without_client(self, make):
        with pytest.raises(NoClientError):
            self.processor.process_transaction(make(1, 1))
        assert self.state.get_all_accounts() == {}

    def test_dispute(self):
        original = deposit(1, 1, "100")
        self.processor.process_transaction(original)
        self.processor.process_transaction(dispute(1, 1))

        account = self.account()
        assert account.available == Decimal("0")
        assert account.held == Decimal("100")
        assert account.total == Decimal("100")
        assert original.state == TransactionState.DISPUTED

    def test_dispute_nonexistent_transaction(self):
        self.processor.process_transaction(deposit(1, 1, "100"))

        with pytest.raises(ReferencesNonExistingError):
            self.processor.process_transaction(dispute(1, 999))
        assert self.account().held == Decimal("0")

    def test_dispute_wrong_client(self):
        self.processor.process_transaction(deposit(1, 1, "100"))
        self.processor.process_transaction(deposit(2, 2, "100"))

        with pytest.raises(WrongClientError):
            self.processor.process_transaction(dispute(2, 1))

        assert self.account(1).held == Decimal("0")
        assert self.account(2).held == Decimal("0")
        assert self.state.get_transaction(1).state == TransactionState.SUCCESS

    def test_dispute_withdrawal_rejected(self):
        self.processor.process_transaction(deposit(1, 1, "100"))
        self.processor.process_transaction(withdrawal(1, 2, "50"))

        with pytest.raises(ShouldBeDepositError):
            self.processor.process_transaction(dispute(1, 2))
        assert self.account().available == Decimal("50")
        assert self.account().held == Decimal("0")

    def test_duplicate_dispute_rejected(self):
        self.processor.process_transaction(deposit(1, 1, "100"))
        self.processor.process_transaction(dispute(1, 1))

        with pytest.raises(WrongTransactionStateError):
            self.processor.process_transaction(dispute(1, 1))
        assert self.account().held == Decimal("100")

    def test_dispute_after_funds_withdrawn(self):
        self.processor.process_transaction(deposit(1, 1, "1.0"))
        self.processor.process_transaction(withdrawal(1, 2, "0.5"))

        with pytest.raises(InsufficientFundsError):
            self.processor.process_transaction(dispute(1, 1))

        account = self.account()
        assert account.available == Decimal("0.5")
        assert account.held == Decimal("0")
        assert self.state.get_transaction(1).state == TransactionState.SUCCESS

    def test_resolve(self):
        original = deposit(1, 1, "100")
        self.processor.process_transaction(original)
        self.processor.process_transaction(dispute(1, 1))
        self.processor.process_transaction(resolve(1, 1))

        account = self.account()
        assert account.available == Decimal("100")
        assert account.held == Decimal("0")
        assert original.state == TransactionState.SUCCESS

    def test_resolve_without_dispute(self):
        self.processor.process_transaction(deposit(1, 1, "100"))

        with pytest.raises(WrongTransactionStateError):
            self.processor.process_transaction(resolve(1, 1))
        assert self.account().available == Decimal("100")

    def test_resolve_nonexistent_transaction(self):
        self.processor.process_transaction(deposit(1, 1, "100"))

        with pytest.raises(ReferencesNonExistingError):
            self.processor.process_transaction(resolve(1, 2))

    def test_resolve_wrong_client(self):
        self.processor.process_transaction(deposit(1, 1, "100"))
        self.processor.process_transaction(deposit(2, 2, "100"))
        self.processor.process_transaction(dispute(1, 1))

        with pytest.raises(WrongClientError):
            self.processor.process_transaction(resolve(2, 1))
        assert self.account(1).held == Decimal("100")

    def test_chargeback(self):
        original = deposit(1, 1, "100")
        self.processor.process_transaction(original)
        self.processor.process_transaction(dispute(1, 1))
        self.processor.process_transaction(chargeback(1, 1))

        account = self.account()
        assert account.available == Decimal("0")
        assert account.held == Decimal("0")
        assert account.total == Decimal("0")
        assert account.locked is True
        assert original.state == TransactionState.CHARGED_BACK

    def test_chargeback_without_dispute(self):
        self.processor.process_transaction(deposit(1, 1, "100"))

        with pytest.raises(WrongTransactionStateError):
            self.processor.process_transaction(chargeback(1, 1))
        assert self.account().locked is False

    def test_chargeback_of_withdrawal_rejected(self):
        self.processor.process_transaction(deposit(1, 1, "100"))
        self.processor.process_transaction(withdrawal(1, 2, "10"))

        with pytest.raises(ShouldBeDepositError):
            self.processor.process_transaction(chargeback(1, 2))
        assert self.account().locked is False

    def test_locked_account_rejects_everything(self):
        self.processor.process_transaction(deposit(1, 1, "3.2"))
        self.processor.process_transaction(deposit(1, 2, "2.0"))
        self.processor.process_transaction(dispute(1, 1))
        self.account().lock()

        for tx in [deposit(1, 3, "1.0"), withdrawal(1, 4, "1.0"), dispute(1, 2), resolve(1, 1), chargeback(1, 1)]:
            with pytest.raises(AccountLockedError):
                self.processor.process_transaction(tx)

        account = self.account()
        assert account.available == Decimal("2.0")
        assert account.held == Decimal("3.2")
        assert account.total == Decimal("5.2")
        assert not self.state.has_transaction(3)

    def test_held_shortfall_is_an_invariant_violation(self, caplog):
        self.processor.process_transaction(deposit(1, 1, "100"))
        self.processor.process_transaction(dispute(1, 1))
        # Tamper with held funds behind the processor's back
        self.account().held = Balance("40")

        with pytest.raises(BalanceInvariantViolationError):
            self.processor.process_transaction(resolve(1, 1))

        assert self.account().held == Decimal("40")
        assert self.state.get_transaction(1).state == TransactionState.DISPUTED
        assert "This should never happen" in caplog.text

    def test_balance_overflow_becomes_rejection(self):
        self.processor.process_transaction(deposit(1, 1, "9E+45"))
        tx = deposit(1, 2, "9E+45")

        with pytest.raises(BalanceUpdateError) as exc_info:
            self.processor.process_transaction(tx)

        assert exc_info.value.transaction is tx
        assert self.account().available == Decimal("9E+45")
        assert not self.state.has_transaction(2)

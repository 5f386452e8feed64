"""Error codes and exceptions.

Error code ranges:
  1xxx: Input (a CSV row could not become a transaction)
  2xxx: Engine (a transaction broke a business rule)
  9xxx: Fatal (the run cannot continue)

Input and engine errors are collected by the engine and never abort a run.
Fatal errors are raised to the caller.
"""
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence

from models import Transaction

NO_EFFECT = "This transaction has been ignored and no data was modified by it."


class PaymentsError(Exception):
    """Base application error."""

    def __init__(self, code: int, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return f"Error: {self.message}"


class TransactionError(PaymentsError):
    """A record that was rejected. Collected, never fatal."""


# --- 1xxx: Input ---

class ParseErrorKind(Enum):
    MALFORMED_ROW = 1001
    INVALID_CLIENT = 1002
    INVALID_TRANSACTION_ID = 1003
    INVALID_AMOUNT = 1004
    AMOUNT_NEGATIVE = 1005
    MISSING_AMOUNT = 1006
    UNEXPECTED_AMOUNT = 1007
    UNKNOWN_TRANSACTION_TYPE = 1008


class ParseError(TransactionError):
    def __init__(self, kind: ParseErrorKind, detail: str, line: Optional[int] = None,
                 row: Optional[Sequence[str]] = None) -> None:
        self.kind = kind
        self.detail = detail
        self.line = line
        self.row = list(row) if row is not None else None
        location = f" on line {line}" if line is not None else ""
        raw = f" {self.row!r}" if self.row is not None else ""
        super().__init__(
            kind.value,
            f"A line of input could not be deserialized into a valid transaction{location}: "
            f"{detail}.{raw} {NO_EFFECT}",
        )


# --- 2xxx: Engine ---

class RejectedTransactionError(TransactionError):
    """A well-formed transaction that violated a business rule."""

    code: int = 2000
    description: str = "The transaction was rejected"

    def __init__(self, transaction: Transaction) -> None:
        self.transaction = transaction
        super().__init__(self.code, f"{self.description}: {transaction}. {NO_EFFECT}")


class DuplicateTransactionError(RejectedTransactionError):
    code = 2001
    description = "A duplicate transaction id occurred in your data"


class AccountLockedError(RejectedTransactionError):
    code = 2002
    description = "The client account is locked"


class InsufficientFundsError(RejectedTransactionError):
    code = 2003
    description = "Cannot withdraw/dispute with insufficient funds"


class NoClientError(RejectedTransactionError):
    code = 2004
    description = "Cannot withdraw/dispute/resolve/charge back from non-existing client"


class WrongClientError(RejectedTransactionError):
    code = 2005
    description = "Cannot dispute/resolve/charge back from a different client than the original deposit"


class WrongTransactionStateError(RejectedTransactionError):
    code = 2006
    description = "Can only dispute a successful transaction, resolve/charge back a disputed transaction"


class ReferencesNonExistingError(RejectedTransactionError):
    code = 2007
    description = "Cannot dispute/resolve/charge back a non existing transaction"


class ShouldBeDepositError(RejectedTransactionError):
    code = 2008
    description = "Disputed transaction must be a deposit"


class BalanceInvariantViolationError(RejectedTransactionError):
    """Held funds are smaller than a disputed deposit. Should be unreachable."""

    code = 2009
    description = "Held funds are insufficient to settle the disputed transaction"


class BalanceUpdateError(RejectedTransactionError):
    code = 2010
    description = "Applying the transaction would produce an invalid balance"

    def __init__(self, transaction: Transaction, source: Exception) -> None:
        self.source = source
        super().__init__(transaction)
        self.message = f"{self.description} ({source}): {transaction}. {NO_EFFECT}"
        self.args = (self.message,)


# --- 9xxx: Fatal ---

class FatalError(PaymentsError):
    """The run cannot continue."""


class InputFileError(FatalError):
    def __init__(self, path: Path, source: OSError) -> None:
        self.path = path
        self.source = source
        super().__init__(9001, f"Could not open the supplied input file ({path}): {source}")


class HeaderError(FatalError):
    def __init__(self, found: Optional[Sequence[str]] = None, source: Optional[Exception] = None) -> None:
        self.found = list(found) if found is not None else None
        self.source = source
        if source is not None:
            detail = f" The header could not be read: {source}."
        elif self.found is not None:
            detail = f" Found: {self.found!r}."
        else:
            detail = " The input is empty."
        super().__init__(
            9002,
            'Only CSV files with a valid header are supported. '
            'For a valid header the first line should be: "type, client, tx, amount".' + detail,
        )


class SerializeError(FatalError):
    def __init__(self, source: Exception) -> None:
        self.source = source
        super().__init__(9003, f"Failed to serialize client information: {source}")

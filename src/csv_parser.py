"""
CSV source for transactions.

    type, client, tx, amount
    deposit, 1, 1, 1.0
    withdrawal, 1, 2, 0.5
    dispute, 1, 1,

Rows are parsed lazily. A row that cannot become a Transaction is yielded as a
ParseError instead, so the engine can report it and move on.
"""
import csv
import io
import logging
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Iterator, List, Optional, TextIO, Union

from balance import Balance, InvalidBalanceError
from errors import HeaderError, InputFileError, ParseError, ParseErrorKind
from models import Transaction, TransactionType

logger = logging.getLogger(__name__)

HEADER = ["type", "client", "tx", "amount"]

MAX_CLIENT_ID = 65535
MAX_TRANSACTION_ID = 4294967295


class CsvTransactionReader:
    """
    Iterator of Transaction | ParseError over a CSV stream.
    The header is validated on construction; rows are read one at a time.
    """

    def __init__(self, stream: TextIO):
        self._stream = stream
        self._reader = csv.reader(stream)
        self._read_header()

    @classmethod
    def from_path(cls, filepath: Union[str, Path]) -> "CsvTransactionReader":
        """Open a CSV file. The file stays open until the reader is closed."""
        path = Path(filepath)
        try:
            stream = open(path, "r", newline="", encoding="utf-8", errors="replace")
        except OSError as e:
            raise InputFileError(path, e) from e

        try:
            return cls(stream)
        except Exception:
            stream.close()
            raise

    @classmethod
    def from_string(cls, text: str) -> "CsvTransactionReader":
        return cls(io.StringIO(text.strip()))

    def __iter__(self) -> Iterator[Union[Transaction, ParseError]]:
        return self

    def __next__(self) -> Union[Transaction, ParseError]:
        while True:
            try:
                row = next(self._reader)
            except csv.Error as e:
                return self._reject(ParseErrorKind.MALFORMED_ROW, str(e), None)

            fields = [value.strip() for value in row]
            if not any(fields):
                continue
            return self._parse_row(fields)

    def close(self) -> None:
        self._stream.close()

    def __enter__(self) -> "CsvTransactionReader":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def line_num(self) -> int:
        return self._reader.line_num

    def _read_header(self) -> None:
        try:
            for row in self._reader:
                fields = [value.strip() for value in row]
                if not any(fields):
                    continue
                if fields != HEADER:
                    raise HeaderError(fields)
                return
        except csv.Error as e:
            raise HeaderError(source=e) from e
        raise HeaderError()

    def _parse_row(self, fields: List[str]) -> Union[Transaction, ParseError]:
        """Parse CSV row into Transaction."""
        if len(fields) not in (3, 4):
            return self._reject(ParseErrorKind.MALFORMED_ROW, f"expected 3 or 4 fields, got {len(fields)}", fields)

        type_str, client_str, tx_str = fields[:3]
        amount_str = fields[3] if len(fields) == 4 else ""

        try:
            transaction_type = TransactionType(type_str.lower())
        except ValueError:
            return self._reject(ParseErrorKind.UNKNOWN_TRANSACTION_TYPE, f"unknown transaction type {type_str!r}", fields)

        client_id = _parse_int(client_str, MAX_CLIENT_ID)
        if client_id is None:
            return self._reject(ParseErrorKind.INVALID_CLIENT, f"invalid client id {client_str!r}", fields)

        transaction_id = _parse_int(tx_str, MAX_TRANSACTION_ID)
        if transaction_id is None:
            return self._reject(ParseErrorKind.INVALID_TRANSACTION_ID, f"invalid transaction id {tx_str!r}", fields)

        if not transaction_type.carries_amount:
            if amount_str:
                return self._reject(
                    ParseErrorKind.UNEXPECTED_AMOUNT,
                    f"{transaction_type.value} must not carry an amount",
                    fields,
                )
            return Transaction(transaction_type=transaction_type, client_id=client_id, transaction_id=transaction_id)

        if not amount_str:
            return self._reject(ParseErrorKind.MISSING_AMOUNT, f"{transaction_type.value} requires an amount", fields)

        try:
            amount = Decimal(amount_str)
        except InvalidOperation:
            return self._reject(ParseErrorKind.INVALID_AMOUNT, f"invalid amount {amount_str!r}", fields)

        if not amount.is_finite():
            return self._reject(ParseErrorKind.INVALID_AMOUNT, f"amount must be finite, got {amount_str!r}", fields)
        if amount < 0:
            return self._reject(ParseErrorKind.AMOUNT_NEGATIVE, f"amount must not be negative, got {amount_str!r}", fields)

        try:
            balance = Balance(amount)
        except InvalidBalanceError as e:
            return self._reject(ParseErrorKind.INVALID_AMOUNT, str(e), fields)

        return Transaction(
            transaction_type=transaction_type,
            client_id=client_id,
            transaction_id=transaction_id,
            amount=balance,
        )

    def _reject(self, kind: ParseErrorKind, detail: str, fields: Optional[List[str]]) -> ParseError:
        error = ParseError(kind, detail, line=self._reader.line_num, row=fields)
        logger.debug(f"Failed to parse row {fields} on line {self._reader.line_num}: {detail}")
        return error


def _parse_int(value: str, maximum: int) -> Optional[int]:
    if not (value.isascii() and value.isdigit()):
        return None
    number = int(value)
    if number > maximum:
        return None
    return number

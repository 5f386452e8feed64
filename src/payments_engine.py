import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from csv_parser import CsvTransactionReader
from errors import ParseError, RejectedTransactionError, TransactionError
from models import Transaction, ClientAccount, ProcessingStats
from state_manager import StateManager
from transaction_processor import TransactionProcessor

logger = logging.getLogger(__name__)

TransactionRecord = Union[Transaction, ParseError]


class PaymentsEngine:
    """
    Applies a stream of transactions to client accounts, one record at a time.

    Input items are either a Transaction or the ParseError produced for a row
    that could not become one. Rejections of either kind are collected in
    ``errors`` and processing always runs to the end of the input.
    Not safe for concurrent use.
    """

    def __init__(self):
        self._state = StateManager()
        self._processor = TransactionProcessor(self._state)
        self._errors: List[TransactionError] = []
        self.stats = ProcessingStats()

    @property
    def errors(self) -> List[TransactionError]:
        return list(self._errors)

    def process(self, records: Iterable[TransactionRecord]) -> List[TransactionError]:
        """Process records in order and return every error collected so far."""
        logger.info("Starting transaction processing")

        for record in records:
            if isinstance(record, ParseError):
                logger.debug(f"Skipping unparseable record: {record.detail}")
                self.stats.record_parse_failure(record)
                self._errors.append(record)
                continue

            try:
                self._processor.process_transaction(record)
            except RejectedTransactionError as e:
                logger.debug(f"Rejected {record!r}: {type(e).__name__}")
                self.stats.record_failure(e)
                self._errors.append(e)
            else:
                self.stats.record_success()

        logger.info(f"Transaction processing complete. {self.stats.summary()}")
        return self.errors

    def process_file(self, filepath: Union[str, Path]) -> Dict[int, ClientAccount]:
        """Process CSV file and return final account states."""
        with CsvTransactionReader.from_path(filepath) as reader:
            self.process(reader)
        return self.get_all_accounts()

    def get_account(self, client_id: int) -> Optional[ClientAccount]:
        """Return the live account for a client; changes to it affect later processing."""
        return self._state.get_account(client_id)

    def get_all_accounts(self) -> Dict[int, ClientAccount]:
        return self._state.get_all_accounts()

    def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        return self._state.get_transaction(transaction_id)

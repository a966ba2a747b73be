import logging
from typing import Iterable, List

from csv_source import read_transactions_file
from models import AccountSnapshot, ProcessingStats, Transaction
from transaction_processor import TransactionProcessor

logger = logging.getLogger(__name__)


class PaymentsEngine:
    """
    Feeds a record stream through the ledger one record at a time, in arrival
    order, and hands back the final account snapshot.
    """

    def __init__(self, enforce_locks: bool = False):
        self._processor = TransactionProcessor(enforce_locks=enforce_locks)
        self.stats = ProcessingStats()

    def process_file(self, filepath: str) -> List[AccountSnapshot]:
        """Process CSV file and return final account states."""
        logger.info(f"Processing transactions from {filepath}")
        return self.process(read_transactions_file(filepath))

    def process(self, transactions: Iterable[Transaction]) -> List[AccountSnapshot]:
        for transaction in transactions:
            error = self._processor.apply(transaction)
            if error is None:
                self.stats.record_success()
            else:
                self.stats.record_failure(error)

        logger.info(f"Processed: {self.stats.processed}, Failed: {self.stats.failed}")
        for error, count in self.stats.failures_by_error.items():
            logger.info(f"  {error.value}: {count}")

        return self._processor.snapshot()

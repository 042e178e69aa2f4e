# tablesync/db_sync/retry.py
import logging
import time
from typing import Callable, Optional

from .connections import classify_error
from .models import TableSyncResult

logger = logging.getLogger(__name__)


class RetryCoordinator:
    """Bounded retries for one table operation, for connectivity failures only"""

    def __init__(self, max_retries: int = 3, base_delay: float = 2.0,
                 sleep: Callable[[float], None] = time.sleep):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.sleep = sleep

    def delay_for(self, attempt: int) -> float:
        """Wait before the retry that follows a failed attempt (2s, 4s, 6s...)"""
        return self.base_delay * attempt

    def run(self, table: str, operation: Callable[[], TableSyncResult]) -> TableSyncResult:
        """
        Run a table operation until it succeeds or stops being retryable

        Args:
            table: Table name, for results and log messages
            operation: Callable performing one attempt

        Returns:
            The successful result, or the last failure observed
        """
        last_result: Optional[TableSyncResult] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                last_result = operation()
            except Exception as e:
                last_result = TableSyncResult.failure(table, str(e), classify_error(e))

            if last_result.success or not last_result.is_retryable:
                return last_result

            if attempt < self.max_retries:
                delay = self.delay_for(attempt)
                logger.warning(
                    f"{table}: connectivity failure on attempt {attempt}/{self.max_retries}, "
                    f"retrying in {delay:.1f}s: {last_result.error_message}"
                )
                self.sleep(delay)

        logger.error(f"{table}: giving up after {self.max_retries} attempts")
        return last_result

# tablesync/db_sync/models.py
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional, Tuple


class SyncDirection(Enum):
    """Direction label stored with each tracking row"""
    PULL = "Pull"
    PUSH = "Push"
    INITIAL = "Initial"


class ErrorKind(Enum):
    CONNECTIVITY = "connectivity"
    SCHEMA = "schema"
    VALIDATION = "validation"
    ROW = "row"
    INTERNAL = "internal"


@dataclass(frozen=True)
class RowError:
    """A single row that could not be written"""
    kind: ErrorKind
    message: str
    key: Optional[object] = None


class TableErrorLog:
    """Ordered accumulator of row-level errors for one table operation"""

    def __init__(self):
        self._errors: List[RowError] = []

    def add(self, kind: ErrorKind, message: str, key: Optional[object] = None) -> None:
        self._errors.append(RowError(kind=kind, message=message, key=key))

    def extend(self, kind: ErrorKind, messages: List[str], key: Optional[object] = None) -> None:
        for message in messages:
            self.add(kind, message, key)

    @property
    def errors(self) -> Tuple[RowError, ...]:
        return tuple(self._errors)

    def summary(self, failed_rows: int, sample_size: int = 5) -> str:
        """
        Render the table error message

        Args:
            failed_rows: Number of rows that were skipped because of errors
            sample_size: Maximum number of messages to include

        Returns:
            Message with the row count, sample messages and a suppressed count
        """
        if not self._errors:
            return ''

        messages = [error.message for error in self._errors]
        summary = f"{failed_rows} row(s) failed: {'; '.join(messages[:sample_size])}"
        if len(messages) > sample_size:
            summary += f" (and {len(messages) - sample_size} more)"
        return summary


@dataclass(frozen=True)
class TableSyncResult:
    """Outcome of one table in one direction"""
    table: str
    success: bool = False
    rows_copied: int = 0
    error_message: str = ''
    error_kind: Optional[ErrorKind] = None
    errors: Tuple[RowError, ...] = ()
    rows_skipped: int = 0

    @classmethod
    def failure(cls, table: str, message: str, kind: ErrorKind) -> 'TableSyncResult':
        return cls(table=table, success=False, error_message=message, error_kind=kind)

    @property
    def is_retryable(self) -> bool:
        return not self.success and self.error_kind == ErrorKind.CONNECTIVITY


@dataclass
class SyncResult:
    """Aggregate result of one mirror or bidirectional run"""
    success: bool = False
    error_message: str = ''
    messages: List[str] = field(default_factory=list)
    tables_processed: int = 0
    rows_copied_total: int = 0
    has_warnings: bool = False
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    duration: Optional[timedelta] = None
    table_results: List[TableSyncResult] = field(default_factory=list)

    def add_message(self, message: str = '') -> None:
        self.messages.append(message)

    def add_table_result(self, result: TableSyncResult, ok_message: str, failed_message: str) -> None:
        """Fold one table outcome into the totals and the progress messages"""
        self.table_results.append(result)
        self.tables_processed += 1
        self.rows_copied_total += result.rows_copied

        if result.success:
            self.messages.append(ok_message)
            if result.error_message:
                self.messages.append(f"⚠ {result.table}: {result.error_message}")
                self.has_warnings = True
        else:
            self.messages.append(failed_message)
            self.has_warnings = True

    def finish(self) -> None:
        self.end_time = datetime.now()
        self.duration = self.end_time - self.start_time


@dataclass
class SyncConfig:
    max_retries: int = 3
    retry_base_delay: float = 2.0  # seconds
    error_sample_size: int = 5
    modified_column: str = 'modified_date'
    created_column: str = 'created_date'
    tracking_table: str = 'tbl_sync_tracking'

    def __post_init__(self):
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.retry_base_delay < 0:
            raise ValueError("retry_base_delay cannot be negative")
        if self.error_sample_size < 0:
            raise ValueError("error_sample_size cannot be negative")


@dataclass
class DatabaseEndpoint:
    """Connection descriptor for one side of the replication"""
    name: str
    url: str
    connect_timeout: Optional[int] = None  # seconds
    command_timeout: Optional[int] = None  # seconds

    @classmethod
    def cloud(cls, url: str, connect_timeout: int = 60, command_timeout: int = 300) -> 'DatabaseEndpoint':
        return cls(name='cloud', url=url, connect_timeout=connect_timeout,
                   command_timeout=command_timeout)

    @classmethod
    def local(cls, url: str) -> 'DatabaseEndpoint':
        return cls(name='local', url=url)

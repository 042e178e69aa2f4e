# tests/test_retry.py
import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from tablesync.db_sync.connections import classify_error
from tablesync.db_sync.errors import EndpointUnavailableError, NoMatchingColumnsError
from tablesync.db_sync.models import ErrorKind, TableSyncResult
from tablesync.db_sync.retry import RetryCoordinator


def unreachable():
    return OperationalError('SELECT 1', {}, Exception('network-related error: server not found'),
                            connection_invalidated=True)


class FlakyOperation:
    """Fails with a connectivity error a fixed number of times, then succeeds"""

    def __init__(self, failures, rows=5):
        self.failures = failures
        self.rows = rows
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise unreachable()
        return TableSyncResult(table='tbl_roles', success=True, rows_copied=self.rows)


def test_success_returns_immediately():
    sleeps = []
    operation = FlakyOperation(failures=0)
    result = RetryCoordinator(sleep=sleeps.append).run('tbl_roles', operation)

    assert result.success
    assert operation.calls == 1
    assert sleeps == []


def test_recovers_on_third_attempt_with_linear_backoff():
    sleeps = []
    operation = FlakyOperation(failures=2, rows=4)
    result = RetryCoordinator(max_retries=3, base_delay=2.0, sleep=sleeps.append).run('tbl_roles', operation)

    assert result.success
    assert result.rows_copied == 4
    assert operation.calls == 3
    assert sleeps == [2.0, 4.0]


def test_exhausted_retries_return_last_failure():
    sleeps = []
    operation = FlakyOperation(failures=10)
    result = RetryCoordinator(max_retries=3, sleep=sleeps.append).run('tbl_roles', operation)

    assert not result.success
    assert result.error_kind == ErrorKind.CONNECTIVITY
    assert 'network-related error' in result.error_message
    assert operation.calls == 3
    assert sleeps == [2.0, 4.0]


def test_non_connectivity_failure_is_not_retried():
    sleeps = []
    calls = []

    def operation():
        calls.append(1)
        return TableSyncResult.failure('tbl_roles', 'No matching columns found', ErrorKind.SCHEMA)

    result = RetryCoordinator(sleep=sleeps.append).run('tbl_roles', operation)

    assert not result.success
    assert len(calls) == 1
    assert sleeps == []


def test_error_text_does_not_drive_retry():
    sleeps = []

    def operation():
        return TableSyncResult.failure('tbl_roles', 'connection string rejected', ErrorKind.INTERNAL)

    RetryCoordinator(sleep=sleeps.append).run('tbl_roles', operation)
    assert sleeps == []


def test_invalid_retry_count():
    with pytest.raises(ValueError):
        RetryCoordinator(max_retries=0)


@pytest.mark.parametrize('error, kind', [
    (unreachable(), ErrorKind.CONNECTIVITY),
    (ConnectionResetError('reset by peer'), ErrorKind.CONNECTIVITY),
    (EndpointUnavailableError('Could not connect to inventory'), ErrorKind.CONNECTIVITY),
    (OperationalError('INSERT', {}, Exception('no such table: main.missing_audit')), ErrorKind.INTERNAL),
    (OperationalError('INSERT', {}, Exception('Check constraint failed')), ErrorKind.INTERNAL),
    (IntegrityError('INSERT', {}, Exception('UNIQUE constraint failed')), ErrorKind.INTERNAL),
    (NoMatchingColumnsError('No matching columns found'), ErrorKind.SCHEMA),
    (ValueError('bad value'), ErrorKind.INTERNAL),
])
def test_classify_error(error, kind):
    assert classify_error(error) == kind

"""
Retry helper tests.

Verifies:
- Lock conflicts are retried
- A lock wait that keeps timing out surfaces as StorageTimeoutError
- Domain errors are not retried
"""

import pytest
from sqlalchemy.exc import OperationalError

from laundromat.services.concurrency import StorageTimeoutError, is_storage_timeout, run_with_retry
from laundromat.validation import ValidationError


def locked_error():
    return OperationalError("UPDATE orders", {}, Exception("database is locked"))


class TestRunWithRetry:

    def test_retries_then_succeeds(self, db_session):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise locked_error()
            return "done"

        assert run_with_retry(flaky, backoff_base=0) == "done"
        assert len(calls) == 3

    def test_persistent_lock_wait_is_a_storage_timeout(self, db_session):
        def always_locked():
            raise locked_error()

        with pytest.raises(StorageTimeoutError) as excinfo:
            run_with_retry(always_locked, backoff_base=0)
        assert isinstance(excinfo.value.__cause__, OperationalError)
        assert is_storage_timeout(excinfo.value)

    def test_other_operational_errors_propagate(self, db_session):
        def broken():
            raise OperationalError("SELECT 1", {}, Exception("no such table: orders"))

        with pytest.raises(OperationalError):
            run_with_retry(broken, backoff_base=0)

    def test_domain_errors_are_not_retried(self, db_session):
        calls = []

        def invalid():
            calls.append(1)
            raise ValidationError("bad input")

        with pytest.raises(ValidationError):
            run_with_retry(invalid)
        assert len(calls) == 1

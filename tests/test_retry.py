"""
Tests for retry logic on conflicting operations.
"""

import pytest

from ballotbox.errors import ConflictError, InvalidStateError
from ballotbox.retry import (
    RetryError,
    exponential_backoff,
    is_conflict_error,
    retry_on_conflict,
)


class TestExponentialBackoff:
    """Test exponential backoff decorator."""

    def test_success_on_first_try(self):
        """Function that succeeds immediately should not retry."""
        call_count = [0]

        @exponential_backoff(max_retries=3, base_delay=0.01)
        def succeeds():
            call_count[0] += 1
            return "success"

        assert succeeds() == "success"
        assert call_count[0] == 1

    def test_retry_then_succeed(self):
        """Conflicts followed by success should retry."""
        call_count = [0]

        @exponential_backoff(max_retries=3, base_delay=0.01)
        def conflicts_twice():
            call_count[0] += 1
            if call_count[0] < 3:
                raise ConflictError("Database is busy")
            return "success"

        assert conflicts_twice() == "success"
        assert call_count[0] == 3

    def test_all_retries_exhausted(self):
        """Should raise RetryError after all attempts fail."""
        call_count = [0]

        @exponential_backoff(max_retries=2, base_delay=0.01)
        def always_conflicts():
            call_count[0] += 1
            raise ConflictError("Ballot was finalized concurrently")

        with pytest.raises(RetryError) as exc_info:
            always_conflicts()

        assert call_count[0] == 3  # Initial + 2 retries
        assert isinstance(exc_info.value.__cause__, ConflictError)

    def test_domain_errors_are_not_retried(self):
        """Only conflicts are retried by default."""
        call_count = [0]

        @exponential_backoff(max_retries=3, base_delay=0.01)
        def invalid():
            call_count[0] += 1
            raise InvalidStateError("This ballot has already been finalized")

        with pytest.raises(InvalidStateError):
            invalid()

        assert call_count[0] == 1

    def test_exponential_delay(self):
        """Delay should increase exponentially."""
        delays = []

        @exponential_backoff(
            max_retries=3,
            base_delay=0.01,
            exponential_base=2.0,
            on_retry=lambda attempt, exc, delay: delays.append(delay),
        )
        def always_conflicts():
            raise ConflictError("busy")

        with pytest.raises(RetryError):
            always_conflicts()

        assert delays == [0.01, 0.02, 0.04]

    def test_max_delay_cap(self):
        """Delay should not exceed max_delay."""
        delays = []

        @exponential_backoff(
            max_retries=4,
            base_delay=0.01,
            max_delay=0.02,
            exponential_base=3.0,
            on_retry=lambda attempt, exc, delay: delays.append(delay),
        )
        def always_conflicts():
            raise ConflictError("busy")

        with pytest.raises(RetryError):
            always_conflicts()

        assert all(d <= 0.02 for d in delays)


class TestRetryOnConflict:
    def test_passes_arguments_through(self):
        attempts = []

        def bump(ballot_id, delta=1):
            attempts.append(ballot_id)
            if len(attempts) == 1:
                raise ConflictError("busy")
            return delta

        assert retry_on_conflict(bump, "b-1", delta=-1, max_retries=2) == -1
        assert attempts == ["b-1", "b-1"]


class TestIsConflictError:
    def test_conflict_error(self):
        assert is_conflict_error(ConflictError("anything"))

    def test_sqlite_lock_messages(self):
        assert is_conflict_error(Exception("(sqlite3.OperationalError) database is locked"))

    def test_other_errors(self):
        assert not is_conflict_error(InvalidStateError("There is no tie to resolve"))
        assert not is_conflict_error(ValueError("bad value"))

"""
Unit tests for the upstream retry decorator.
"""

import logging
from datetime import date
from unittest.mock import MagicMock, patch

import psycopg
import pytest
from psycopg_pool import PoolTimeout

from src.adapters.repository.profile import PostgresProfileStore
from src.adapters.resilience import upstream_call
from src.domain.exceptions import NotificationError, UpstreamUnavailable
from src.domain.ports import ProfileFields

FIELDS = ProfileFields(
    first_name="Ada", last_name="Lovelace", phone="+15550100", dob=date(1990, 1, 1)
)


class FlakyAdapter:
    """Fails the first ``failures`` calls of each operation."""

    _retry_backoff = 0.05

    def __init__(self, failures: int, error: Exception) -> None:
        self.failures = failures
        self.error = error
        self.calls = 0

    def _attempt(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"

    @upstream_call("lookup")
    def lookup(self) -> str:
        return self._attempt()

    @upstream_call("transition", retry=False)
    def transition(self) -> str:
        return self._attempt()

    @upstream_call("deliver", transient=(OSError,), raise_as=NotificationError)
    def deliver(self) -> str:
        return self._attempt()


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("src.adapters.resilience.time.sleep") as sleep:
        yield sleep


class TestUpstreamCall:
    def test_success_first_try(self, no_sleep) -> None:
        adapter = FlakyAdapter(0, psycopg.OperationalError("down"))
        assert adapter.lookup() == "ok"
        assert adapter.calls == 1
        no_sleep.assert_not_called()

    def test_retries_once_after_backoff(self, no_sleep, caplog: pytest.LogCaptureFixture) -> None:
        adapter = FlakyAdapter(1, psycopg.OperationalError("down"))

        with caplog.at_level(logging.WARNING, logger="src.adapters.resilience"):
            assert adapter.lookup() == "ok"

        assert adapter.calls == 2
        no_sleep.assert_called_once_with(0.05)
        assert "retrying" in caplog.records[0].message

    def test_second_failure_raises_domain_error(self, caplog: pytest.LogCaptureFixture) -> None:
        adapter = FlakyAdapter(2, PoolTimeout("pool exhausted"))

        with caplog.at_level(logging.ERROR, logger="src.adapters.resilience"):
            with pytest.raises(UpstreamUnavailable) as exc_info:
                adapter.lookup()

        assert adapter.calls == 2
        assert isinstance(exc_info.value.__cause__, PoolTimeout)
        assert any(r.levelno == logging.ERROR for r in caplog.records)

    def test_no_retry_for_state_transitions(self, no_sleep) -> None:
        adapter = FlakyAdapter(1, psycopg.OperationalError("down"))

        with pytest.raises(UpstreamUnavailable):
            adapter.transition()

        assert adapter.calls == 1
        no_sleep.assert_not_called()

    def test_non_transient_errors_propagate(self) -> None:
        adapter = FlakyAdapter(1, ValueError("bug"))
        with pytest.raises(ValueError):
            adapter.lookup()
        assert adapter.calls == 1

    def test_custom_transient_and_domain_error(self) -> None:
        adapter = FlakyAdapter(2, TimeoutError("smtp timeout"))
        with pytest.raises(NotificationError):
            adapter.deliver()
        assert adapter.calls == 2

    def test_preserves_function_name(self) -> None:
        assert FlakyAdapter.lookup.__name__ == "lookup"

    def test_retry_warning_names_the_failure(self, caplog: pytest.LogCaptureFixture) -> None:
        adapter = FlakyAdapter(1, psycopg.OperationalError("connection reset"))

        with caplog.at_level(logging.WARNING, logger="src.adapters.resilience"):
            adapter.lookup()

        assert "lookup" in caplog.records[0].message
        assert "connection reset" in caplog.records[0].message


class TestProfileStoreRetryPolicy:
    """Only idempotent profile operations are retried."""

    def test_insert_is_not_retried(self, no_sleep) -> None:
        pool = MagicMock()
        pool.connection.side_effect = psycopg.OperationalError("dropped")
        store = PostgresProfileStore(pool)

        with pytest.raises(UpstreamUnavailable):
            store.insert_profile("id-1", "user@example.com", FIELDS)

        assert pool.connection.call_count == 1
        no_sleep.assert_not_called()

    def test_lookup_is_retried(self, no_sleep) -> None:
        pool = MagicMock()
        pool.connection.side_effect = psycopg.OperationalError("dropped")
        store = PostgresProfileStore(pool, retry_backoff=0.1)

        with pytest.raises(UpstreamUnavailable):
            store.get_profile_by_email("user@example.com")

        assert pool.connection.call_count == 2
        no_sleep.assert_called_once_with(0.1)

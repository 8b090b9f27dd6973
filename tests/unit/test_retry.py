# =============================================================================
# tests/unit/test_retry.py
# Unit Tests for retry_with_backoff
# =============================================================================

from unittest.mock import MagicMock, patch

import pytest

from fitlog.errors import NetworkError, OperationCancelledError
from fitlog.offline.cancellation import CancellationToken
from fitlog.offline.retry import (
    RetryPolicy,
    backoff_delay_ms,
    error_status,
    is_retryable_status,
    retry_with_backoff,
)


class TestRetryDecisions:

    @pytest.mark.parametrize("status,expected", [
        (None, True),
        (400, False),
        (401, False),
        (404, False),
        (408, True),
        (429, True),
        (500, True),
        (503, True),
    ])
    def test_is_retryable_status(self, status, expected):
        assert is_retryable_status(status) is expected

    def test_error_status_reads_response_status_code(self):
        error = Exception("boom")
        error.response = MagicMock(status_code=502)

        assert error_status(error) == 502

    def test_backoff_delay_bounds(self):
        for attempt in range(3):
            delay = backoff_delay_ms(attempt, 1000)
            assert 1000 * 2 ** attempt <= delay <= 1000 * 2 ** attempt + 1000


class TestRetryWithBackoff:

    def test_client_error_is_not_retried(self, no_sleep, http_error):
        operation = MagicMock(side_effect=http_error(404))

        with pytest.raises(Exception) as exc_info:
            retry_with_backoff(operation, max_retries=3, sleep=no_sleep)

        assert exc_info.value.status == 404
        assert operation.call_count == 1
        no_sleep.assert_not_called()

    def test_server_error_twice_then_success(self, no_sleep, http_error):
        operation = MagicMock(side_effect=[http_error(500), http_error(500), "ok"])

        assert retry_with_backoff(operation, max_retries=3, sleep=no_sleep) == "ok"
        assert operation.call_count == 3
        assert no_sleep.call_count == 2

    def test_no_sleep_after_final_attempt(self, no_sleep, http_error):
        operation = MagicMock(side_effect=http_error(503))

        with pytest.raises(Exception):
            retry_with_backoff(operation, max_retries=3, sleep=no_sleep)

        assert operation.call_count == 3
        assert no_sleep.call_count == 2

    def test_delays_double_each_attempt(self, no_sleep, http_error):
        operation = MagicMock(side_effect=[http_error(500), http_error(500), "ok"])

        with patch("fitlog.offline.retry.random.uniform", return_value=0):
            retry_with_backoff(operation, max_retries=3, base_delay_ms=1000, sleep=no_sleep)

        assert [c.args[0] for c in no_sleep.call_args_list] == [1.0, 2.0]

    def test_transient_client_status_is_retried(self, no_sleep, http_error):
        operation = MagicMock(side_effect=[http_error(429), "ok"])

        assert retry_with_backoff(operation, sleep=no_sleep) == "ok"
        assert operation.call_count == 2

    def test_offline_stops_retrying(self, no_sleep, offline):
        operation = MagicMock(side_effect=NetworkError("down"))

        with pytest.raises(NetworkError):
            retry_with_backoff(operation, connection=offline, sleep=no_sleep)

        assert operation.call_count == 1

    def test_cancelled_token_prevents_attempt(self, no_sleep):
        token = CancellationToken()
        token.cancel("unmounted")
        operation = MagicMock(return_value="ok")

        with pytest.raises(OperationCancelledError):
            retry_with_backoff(operation, sleep=no_sleep, token=token)

        operation.assert_not_called()

    def test_cancel_between_attempts(self, no_sleep, http_error):
        token = CancellationToken()
        no_sleep.side_effect = lambda _: token.cancel()
        operation = MagicMock(side_effect=[http_error(500), "ok"])

        with pytest.raises(OperationCancelledError):
            retry_with_backoff(operation, sleep=no_sleep, token=token)

        assert operation.call_count == 1


class TestRetryPolicy:

    def test_run_uses_policy_settings(self, no_sleep, http_error):
        policy = RetryPolicy(max_retries=2, base_delay_ms=10, sleep=no_sleep)
        operation = MagicMock(side_effect=http_error(500))

        with pytest.raises(Exception):
            policy.run(operation)

        assert operation.call_count == 2
        assert no_sleep.call_count == 1

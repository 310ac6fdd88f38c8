"""
Unit tests for the exception hierarchy and retry strategy.
"""

import pytest

from e2e_replay.error_handling.exceptions import (
    ConfigurationError,
    E2EReplayError,
    ElementResolutionError,
    NonRetryableError,
    OracleError,
    RetryableError,
    ScenarioFileError,
    TransportError,
)
from e2e_replay.error_handling.recovery import FixedBackoffStrategy, RetryContext


class TestExceptions:
    """Test custom exceptions."""

    def test_base_exception(self):
        cause = ValueError("boom")
        error = E2EReplayError("Something failed", details={"a": 1}, cause=cause)

        assert str(error) == "Something failed"
        assert error.error_code == "E2EReplayError"
        data = error.to_dict()
        assert data["error_type"] == "E2EReplayError"
        assert data["details"] == {"a": 1}
        assert data["cause"] == "boom"

    def test_transport_error(self):
        error = TransportError("Ref not found", browser_id=2, tool="browser_click")

        assert isinstance(error, RetryableError)
        assert error.details == {"browser_id": 2, "tool": "browser_click"}

    def test_retryable_branch(self):
        assert isinstance(OracleError("bad", model="m"), RetryableError)
        assert ElementResolutionError("gone", anchor="Save").details["anchor"] == "Save"

    def test_non_retryable_branch(self):
        config_error = ConfigurationError("no key", setting="openrouter_api_key")
        file_error = ScenarioFileError("missing", path="a.txt")

        assert isinstance(config_error, NonRetryableError)
        assert not isinstance(config_error, RetryableError)
        assert config_error.details["setting"] == "openrouter_api_key"
        assert file_error.details["path"] == "a.txt"

    def test_custom_error_code(self):
        assert TransportError("x", error_code="MCP_DOWN").error_code == "MCP_DOWN"


class TestFixedBackoffStrategy:
    """Test the retry strategy."""

    def test_attempts_are_retries_plus_one(self):
        strategy = FixedBackoffStrategy(max_retries=2, backoff_ms=1000)
        context = RetryContext(operation_name="step 1")

        decisions = []
        for _ in range(3):
            context.add_attempt("failed")
            decisions.append(strategy.should_retry(context))

        assert decisions == [True, True, False]
        assert strategy.max_attempts == 3
        assert context.failures == ["failed"] * 3

    def test_zero_retries(self):
        strategy = FixedBackoffStrategy(max_retries=0)
        context = RetryContext(operation_name="step 1")
        context.add_attempt("failed")

        assert not strategy.should_retry(context)

    def test_constant_delay(self):
        strategy = FixedBackoffStrategy(backoff_ms=250)

        assert strategy.get_delay_ms(2) == strategy.get_delay_ms(5) == 250

    def test_negative_retries_rejected(self):
        with pytest.raises(ValueError):
            FixedBackoffStrategy(max_retries=-1)

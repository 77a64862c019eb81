"""Tests for error classification and retry logic."""

import asyncio
import pytest

from ledgerlens.data.resilience import (
    ErrorCategory,
    classify_error,
    get_user_message,
    with_retry,
)
from ledgerlens.domain.errors import (
    ActionError,
    ConflictError,
    TransportError,
    ValidationError,
    normalize_error,
)


class TestClassifyError:
    """Test error classification for retry decisions."""

    def test_validation_error(self):
        err = ValidationError("No changes to apply")
        assert classify_error(err) == ErrorCategory.VALIDATION

    def test_conflict_error_is_conflict(self):
        err = ConflictError("stale record", record_id="t1", expected_version=1, actual_version=2)
        assert classify_error(err) == ErrorCategory.CONFLICT

    def test_version_in_message_is_conflict(self):
        err = Exception("Version conflict: expected 2, found 3")
        assert classify_error(err) == ErrorCategory.CONFLICT

    def test_connection_refused_is_transient(self):
        err = ConnectionRefusedError("Connection refused")
        assert classify_error(err) == ErrorCategory.TRANSIENT

    def test_timeout_error_is_transient(self):
        err = asyncio.TimeoutError()
        assert classify_error(err) == ErrorCategory.TRANSIENT

    def test_service_unavailable_message_is_transient(self):
        err = Exception("503 Service Unavailable")
        assert classify_error(err) == ErrorCategory.TRANSIENT

    def test_transport_error_defaults_to_transient(self):
        err = TransportError("server down")
        assert classify_error(err) == ErrorCategory.TRANSIENT

    def test_not_found_is_permanent(self):
        err = TransportError("Transaction t1 not found")
        assert classify_error(err) == ErrorCategory.PERMANENT

    def test_permission_denied_is_permanent(self):
        err = Exception("permission denied")
        assert classify_error(err) == ErrorCategory.PERMANENT

    def test_unknown_error_defaults_to_permanent(self):
        err = RuntimeError("boom")
        assert classify_error(err) == ErrorCategory.PERMANENT


class TestGetUserMessage:
    """Test user-facing messages."""

    def test_validation_message_passes_through(self):
        assert get_user_message(ValidationError("No changes to apply")) == "No changes to apply"

    def test_conflict_message(self):
        msg = get_user_message(ConflictError("version mismatch"))
        assert "refresh" in msg.lower()

    def test_transport_message_passes_through(self):
        assert get_user_message(TransportError("server down")) == "server down"

    def test_connection_message(self):
        msg = get_user_message(ConnectionError())
        assert "try again" in msg.lower()

    def test_permanent_message(self):
        assert get_user_message(RuntimeError("boom")) == "Operation failed: boom"


class TestNormalizeError:
    """Test normalization of failure values."""

    def test_exception_passes_through(self):
        err = TransportError("down")
        assert normalize_error(err) is err

    def test_string_wrapped(self):
        err = normalize_error("rejected")
        assert isinstance(err, ActionError)
        assert str(err) == "rejected"

    def test_none_wrapped(self):
        assert str(normalize_error(None)) == "None"


class TestWithRetry:
    """Test retry logic with exponential backoff."""

    @pytest.mark.asyncio
    async def test_success_on_first_try(self):
        call_count = 0

        async def operation():
            nonlocal call_count
            call_count += 1
            return "ok"

        result = await with_retry(operation, max_retries=3, initial_delay=0.01)
        assert result == "ok"
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_success_after_transient_failure(self):
        call_count = 0

        async def operation():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise ConnectionError("connection reset")
            return "ok"

        result = await with_retry(operation, max_retries=3, initial_delay=0.01)
        assert result == "ok"
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_validation_error_not_retried(self):
        call_count = 0

        async def operation():
            nonlocal call_count
            call_count += 1
            raise ValidationError("bad input")

        with pytest.raises(ValidationError):
            await with_retry(operation, max_retries=3, initial_delay=0.01)

        assert call_count == 1  # No retries

    @pytest.mark.asyncio
    async def test_conflict_error_not_retried(self):
        call_count = 0

        async def operation():
            nonlocal call_count
            call_count += 1
            raise ConflictError("version conflict")

        with pytest.raises(ConflictError):
            await with_retry(operation, max_retries=3, initial_delay=0.01)

        assert call_count == 1

    @pytest.mark.asyncio
    async def test_max_retries_exceeded(self):
        call_count = 0

        async def operation():
            nonlocal call_count
            call_count += 1
            raise TransportError("always fails")

        with pytest.raises(TransportError):
            await with_retry(operation, max_retries=2, initial_delay=0.01)

        assert call_count == 3  # 1 initial + 2 retries

    @pytest.mark.asyncio
    async def test_on_retry_callback(self):
        retries = []

        async def operation():
            raise ConnectionError("fail")

        def on_retry(attempt, delay, error):
            retries.append((attempt, delay))

        with pytest.raises(ConnectionError):
            await with_retry(
                operation, max_retries=2, initial_delay=0.01, backoff_factor=2.0, on_retry=on_retry,
            )

        assert retries == [(1, 0.01), (2, 0.02)]

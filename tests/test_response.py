"""Tests for Slack response handling and error classification."""

import asyncio
from unittest.mock import AsyncMock

import aiohttp
import pytest

from slackmod.exceptions import (
    APIError,
    AuthError,
    CircuitOpenError,
    ErrorKind,
    NetworkError,
    NotFoundError,
    RateLimitedError,
    RequestTimeoutError,
)
from slackmod.pool import ClientPool
from slackmod.resilience_config import CircuitBreakerConfig, RequestQueueConfig
from slackmod.response import ResponseHandler, call_slack, classify_error, response_data


class TestClassifyError:
    """Tests for mapping raw failures onto the error taxonomy."""

    def test_rate_limited_by_status(self, api_error):
        error = classify_error(api_error("ratelimited", 429, {"Retry-After": "30"}), "chat.postMessage")
        assert isinstance(error, RateLimitedError)
        assert error.kind == ErrorKind.RATE_LIMITED
        assert error.retryable is True
        assert error.retry_after == 30.0

    def test_rate_limited_default_retry_after(self, api_error):
        error = classify_error(api_error("ratelimited"), "users.list")
        assert isinstance(error, RateLimitedError)
        assert error.retry_after == 60.0

    @pytest.mark.parametrize("code", ["invalid_auth", "missing_scope", "account_inactive", "token_revoked"])
    def test_auth_errors(self, api_error, code):
        error = classify_error(api_error(code), "users.list")
        assert isinstance(error, AuthError)
        assert error.kind == ErrorKind.AUTH_ERROR
        assert error.retryable is False
        assert error.platform_error == code

    def test_other_platform_error(self, api_error):
        error = classify_error(api_error("channel_not_found"), "chat.postMessage")
        assert isinstance(error, APIError)
        assert error.kind == ErrorKind.API_ERROR
        assert error.retryable is False
        assert error.platform_error == "channel_not_found"
        assert error.message == "chat.postMessage failed: channel_not_found"

    def test_timeout(self):
        error = classify_error(asyncio.TimeoutError(), "users.list")
        assert isinstance(error, RequestTimeoutError)
        assert error.kind == ErrorKind.TIMEOUT
        assert error.retryable is True

    def test_server_timeout_counts_as_timeout(self):
        error = classify_error(aiohttp.ServerTimeoutError("slow"), "users.list")
        assert isinstance(error, RequestTimeoutError)

    def test_network(self):
        error = classify_error(aiohttp.ClientConnectionError("refused"), "users.list")
        assert isinstance(error, NetworkError)
        assert error.kind == ErrorKind.NETWORK_ERROR
        assert error.retryable is True

    def test_slackmod_errors_pass_through(self):
        original = NotFoundError("channel", "nosuch")
        assert classify_error(original, "x") is original

    def test_unknown_exception(self):
        error = classify_error(KeyError("k"), "auth.test")
        assert isinstance(error, APIError)
        assert error.message.startswith("auth.test failed")


@pytest.fixture
def pool():
    return ClientPool(
        breaker_config=CircuitBreakerConfig(failure_threshold=2),
        queue_config=RequestQueueConfig(dispatch_delay_seconds=0),
    )


class TestResponseHandler:
    """Tests for executing operations through the handler."""

    @pytest.mark.asyncio
    async def test_success(self, pool):
        handler = ResponseHandler(pool)
        result = await handler.execute(AsyncMock(return_value={"ok": True}), "auth.test")
        assert result == {"ok": True}

    @pytest.mark.asyncio
    async def test_classifies_and_chains(self, pool, api_error):
        handler = ResponseHandler(pool)
        raw = api_error("invalid_auth")

        with pytest.raises(AuthError) as exc_info:
            await handler.execute(AsyncMock(side_effect=raw), "users.list")
        assert exc_info.value.__cause__ is raw

    @pytest.mark.asyncio
    async def test_breaker_opens_per_operation(self, pool):
        handler = ResponseHandler(pool)
        failing = AsyncMock(side_effect=aiohttp.ClientConnectionError("down"))

        for _ in range(2):
            with pytest.raises(NetworkError):
                await handler.execute(failing, "chat.postMessage")

        operation = AsyncMock(return_value={"ok": True})
        with pytest.raises(CircuitOpenError):
            await handler.execute(operation, "chat.postMessage")
        operation.assert_not_called()

        # Other operations are unaffected
        assert await handler.execute(operation, "users.list") == {"ok": True}

    @pytest.mark.asyncio
    async def test_breaker_bypassed_when_disabled(self, pool):
        handler = ResponseHandler(pool)
        failing = AsyncMock(side_effect=asyncio.TimeoutError())

        for _ in range(3):
            with pytest.raises(RequestTimeoutError):
                await handler.execute(failing, "auth.test", use_circuit_breaker=False)

        assert "auth.test" not in pool.get_circuit_breaker_status()["circuit_breakers"]

    @pytest.mark.asyncio
    async def test_queued_execution(self, pool):
        handler = ResponseHandler(pool)
        result = await handler.execute(AsyncMock(return_value={"ok": True}), "users.info", queued=True)
        assert result == {"ok": True}

    @pytest.mark.asyncio
    async def test_call_slack_shortcut(self, pool):
        assert await call_slack(pool, AsyncMock(return_value=1), "auth.test") == 1


class TestResponseData:
    def test_plain_dict(self):
        assert response_data({"ok": True}) == {"ok": True}

    def test_non_dict(self):
        assert response_data(None) == {}

"""Resilient Anthropic Client — retry, fail-fast and error mapping with a stubbed SDK.

Tests cover:
    - Transient 5xx retried, then success
    - Retries exhausted → AnthropicAPIError(connection_error)
    - 4xx client errors and timeouts fail immediately
    - Rate limit honors Retry-After when computing the delay
"""

from types import SimpleNamespace

import anthropic
import httpx
import pytest

from cardbox.core.errors import AnthropicAPIError
from cardbox.infrastructure.anthropic_client import ResilientAnthropicClient


REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
OK = SimpleNamespace(
    content=[], usage=SimpleNamespace(input_tokens=10, output_tokens=5),
)


def _status_error(cls, status: int, headers: dict | None = None):
    response = httpx.Response(status, request=REQUEST, headers=headers or {})
    return cls(message=f"status {status}", response=response, body=None)


def _client(outcomes: list) -> tuple[ResilientAnthropicClient, list]:
    """Client whose SDK call pops one outcome per attempt (exception or response)."""
    calls: list = []

    async def create(**kwargs):
        calls.append(kwargs)
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    client = ResilientAnthropicClient(
        api_key="sk-ant-test", max_retries=2, base_delay_ms=1, max_delay_ms=2,
    )
    client.client = SimpleNamespace(messages=SimpleNamespace(create=create))
    return client, calls


async def _call(client: ResilientAnthropicClient):
    return await client.create_message(
        model="test-model", max_tokens=16, system="sys",
        messages=[{"role": "user", "content": "hi"}],
    )


async def test_transient_error_retried_then_succeeds():
    client, calls = _client([
        _status_error(anthropic.InternalServerError, 500),
        OK,
    ])
    assert await _call(client) is OK
    assert len(calls) == 2


async def test_overloaded_is_retried():
    client, calls = _client([_status_error(anthropic.APIStatusError, 529), OK])
    assert await _call(client) is OK
    assert len(calls) == 2


async def test_transient_errors_exhaust_retries():
    client, calls = _client([
        _status_error(anthropic.InternalServerError, 500) for _ in range(3)
    ])
    with pytest.raises(AnthropicAPIError) as exc_info:
        await _call(client)
    assert exc_info.value.api_error_type == "connection_error"
    assert len(calls) == 3


async def test_client_error_fails_fast():
    client, calls = _client([_status_error(anthropic.BadRequestError, 400)])
    with pytest.raises(AnthropicAPIError) as exc_info:
        await _call(client)
    assert exc_info.value.api_error_type == "client_error"
    assert len(calls) == 1


async def test_timeout_fails_fast():
    client, calls = _client([anthropic.APITimeoutError(request=REQUEST)])
    with pytest.raises(AnthropicAPIError) as exc_info:
        await _call(client)
    assert exc_info.value.api_error_type == "timeout"
    assert len(calls) == 1


async def test_rate_limit_exhausted_reports_retry_after():
    client, _ = _client([
        _status_error(anthropic.RateLimitError, 429) for _ in range(3)
    ])
    with pytest.raises(AnthropicAPIError) as exc_info:
        await _call(client)
    assert exc_info.value.api_error_type == "rate_limit"
    assert exc_info.value.http_status == 503


def test_retry_after_header_parsed_to_ms():
    client, _ = _client([])
    error = _status_error(anthropic.RateLimitError, 429, {"retry-after": "3"})
    assert client._extract_retry_after(error) == 3000


def test_backoff_is_capped():
    client, _ = _client([])
    for attempt in range(6):
        assert client._backoff(attempt) <= int(client.max_delay_ms * 1.25)

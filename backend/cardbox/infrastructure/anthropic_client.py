"""Anthropic Client — single-shot message calls with bounded retry, used by card OCR.

Invariants:
    - At most max_retries + 1 attempts per create_message call
    - 429: waits Retry-After when the API sends one, exponential backoff otherwise
    - 5xx (incl. 529 overloaded) and connection errors: exponential backoff
    - Timeouts and other 4xx: raised at once, no retry
    - Every failure surfaces as AnthropicAPIError (core/errors.py)

Design Decisions:
    - SDK retries disabled so a single policy governs backoff and logging
    - The engine's asyncio timeout bounds the total time spent here
"""

import asyncio
import logging
import random

import anthropic
from anthropic import (
    APIConnectionError,
    APIError,
    APIStatusError,
    APITimeoutError,
    RateLimitError,
)

from cardbox.core.errors import AnthropicAPIError, ErrorContext

logger = logging.getLogger(__name__)


class ResilientAnthropicClient:
    """AsyncAnthropic behind the retry policy above. One instance per process."""

    def __init__(
        self,
        api_key: str,
        max_retries: int = 2,
        base_delay_ms: int = 500,
        max_delay_ms: int = 8_000,
        timeout_seconds: int = 30,
    ):
        self.client = anthropic.AsyncAnthropic(
            api_key=api_key, timeout=timeout_seconds, max_retries=0,
        )
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    async def create_message(
        self,
        *,
        model: str,
        max_tokens: int,
        system: str,
        messages: list,
        context: ErrorContext | None = None,
    ):
        attempt = 0
        while True:
            try:
                response = await self.client.messages.create(
                    model=model,
                    max_tokens=max_tokens,
                    system=system,
                    messages=messages,
                )
            except APITimeoutError:
                raise AnthropicAPIError("API timeout", "timeout", context=context)
            except RateLimitError as e:
                retry_after_ms = self._extract_retry_after(e)
                if attempt >= self.max_retries:
                    raise AnthropicAPIError(
                        "Rate limit exceeded after retries", "rate_limit",
                        retry_after_ms=retry_after_ms, context=context,
                    )
                delay = retry_after_ms or self._backoff(attempt)
            except APIConnectionError as e:
                delay = self._transient_delay(e, attempt, context)
            except APIStatusError as e:
                if e.status_code < 500:
                    raise AnthropicAPIError(str(e), "client_error", context=context)
                delay = self._transient_delay(e, attempt, context)
            except APIError as e:
                raise AnthropicAPIError(str(e), "client_error", context=context)
            else:
                logger.info(
                    f"Anthropic call succeeded ({response.usage.input_tokens} in / "
                    f"{response.usage.output_tokens} out tokens)",
                    extra={"attempt": attempt + 1},
                )
                return response

            logger.warning(
                f"Anthropic call failed, retrying in {delay}ms",
                extra={"attempt": attempt + 1},
            )
            await asyncio.sleep(delay / 1000)
            attempt += 1

    def _transient_delay(
        self, e: Exception, attempt: int, context: ErrorContext | None,
    ) -> int:
        if attempt >= self.max_retries:
            raise AnthropicAPIError(
                f"Transient failure after {self.max_retries} retries: {e}",
                "connection_error",
                context=context,
            )
        return self._backoff(attempt)

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff in ms, capped, with ±25% jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311

    def _extract_retry_after(self, error: RateLimitError) -> int | None:
        """Retry-After header in ms, when present and numeric."""
        response = getattr(error, "response", None)
        if response is None:
            return None
        value = response.headers.get("retry-after")
        if value and value.isdigit():
            return int(value) * 1000
        return None

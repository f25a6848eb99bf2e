"""
Resilient dispatch of completion requests.

One logical request moves through Attempting(0..max_retries) until it
reaches a terminal state:

    2xx + extractable JSON  -> success(payload)
    2xx without JSON        -> MalformedResponseError
    429, retries left       -> sleep, Attempting(n + 1)
    429, retries spent      -> RateLimitedError(retry_after_seconds)
    402                     -> ProviderQuotaExhaustedError
    other status / timeout  -> ProviderError

Only 429 is retried. The retry delay is the provider's Retry-After
(seconds) when present and positive, otherwise
min(30s, 2**n * 1s) plus 0-499ms of jitter.
"""

import logging
import math
import random
import time
from typing import Any, Callable, Optional

import openai

from devsmentor.features.models import CompletionRequest, DispatchResult
from devsmentor.features.prompt_helpers import extract_json
from devsmentor.utils.errors import (
    MalformedResponseError,
    ProviderError,
    ProviderQuotaExhaustedError,
    RateLimitedError,
)

MAX_BACKOFF_SECONDS = 30.0
BASE_BACKOFF_SECONDS = 1.0
JITTER_MS = 500
DEFAULT_MAX_RETRIES = 3

# Limits how much provider text ends up in errors and logs
MAX_BODY_CHARS = 2000


def parse_retry_after(headers: Any) -> Optional[int]:
    """
    Read a Retry-After header as whole seconds.

    Only the delay-seconds form is honoured. HTTP-date values, garbage,
    and values that round to zero all yield None.
    """
    if headers is None:
        return None
    value = headers.get("retry-after")
    if value is None:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(seconds) or seconds <= 0:
        return None
    rounded = int(math.floor(seconds + 0.5))
    return rounded or None


def backoff_delay(
    attempt: int,
    retry_after: Optional[int] = None,
    rng: Callable[[], float] = random.random,
) -> float:
    """
    Seconds to wait before the retry that follows ``attempt``.

    A provider-supplied Retry-After always wins over the computed backoff.
    """
    if retry_after:
        return float(retry_after)
    base = min(MAX_BACKOFF_SECONDS, (2 ** min(attempt, 16)) * BASE_BACKOFF_SECONDS)
    jitter_ms = math.floor(rng() * JITTER_MS)
    return base + jitter_ms / 1000.0


def _response_text(error: openai.APIStatusError) -> str:
    return error.response.text[:MAX_BODY_CHARS]


class ResilientDispatcher:
    """
    Sends one completion request with bounded retry on rate limiting.

    The dispatcher never touches entitlements; feature handlers own the
    gate-check / send / record-usage ordering.

    Usage:
        dispatcher = ResilientDispatcher(client)
        result = dispatcher.send(CompletionRequest(user_prompt="..."))
        if result.ok:
            use(result.payload)
    """

    def __init__(
        self,
        client: Any,  # LLMClient or anything with complete(request) -> str
        sleep: Callable[[float], None] = time.sleep,
        rng: Callable[[], float] = random.random,
    ):
        self._client = client
        self._sleep = sleep
        self._rng = rng
        self.logger = logging.getLogger("features.dispatcher")

    @property
    def model_id(self) -> Optional[str]:
        return getattr(self._client, "model_id", None)

    def send(
        self,
        request: CompletionRequest,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> DispatchResult:
        """
        Dispatch ``request`` and return its terminal outcome.

        Args:
            request: Prompt and extraction settings.
            max_retries: Retries after the first attempt, for 429 only.

        Returns:
            DispatchResult carrying the payload or a DispatchError.
        """
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")

        attempt = 0
        while True:
            attempts = attempt + 1
            try:
                text = self._client.complete(request)
            except openai.APIStatusError as e:
                status = e.status_code
                if status == 429:
                    retry_after = parse_retry_after(e.response.headers)
                    if attempt >= max_retries:
                        self.logger.warning(
                            f"'{request.label}' still rate limited after {attempts} attempts",
                            extra={"attempt": attempts, "status_code": status},
                        )
                        return DispatchResult.failure(
                            RateLimitedError(
                                message=(
                                    f"Rate limit exceeded. Please wait {retry_after}s and try again."
                                    if retry_after
                                    else "Rate limit exceeded. Please try again later."
                                ),
                                retry_after_seconds=retry_after,
                                attempts=attempts,
                            )
                        )
                    delay = backoff_delay(attempt, retry_after, self._rng)
                    self.logger.warning(
                        f"Provider rate limited (429). Retrying in {delay:.3f}s "
                        f"(attempt {attempts}/{max_retries})",
                        extra={"attempt": attempts, "status_code": status},
                    )
                    self._sleep(delay)
                    attempt += 1
                    continue

                if status == 402:
                    self.logger.error(
                        f"Provider credits exhausted for '{request.label}'",
                        extra={"attempt": attempts, "status_code": status},
                    )
                    return DispatchResult.failure(
                        ProviderQuotaExhaustedError(attempts=attempts)
                    )

                body = _response_text(e)
                self.logger.error(
                    f"AI API error for '{request.label}': {status} {body}",
                    extra={"attempt": attempts, "status_code": status},
                )
                return DispatchResult.failure(
                    ProviderError(
                        f"AI API error: {status}",
                        status_code=status,
                        body=body,
                        attempts=attempts,
                    )
                )
            except openai.APITimeoutError as e:
                self.logger.error(f"AI API timed out for '{request.label}': {e}")
                return DispatchResult.failure(
                    ProviderError("AI API request timed out", body=str(e), attempts=attempts)
                )
            except openai.APIConnectionError as e:
                self.logger.error(f"AI API unreachable for '{request.label}': {e}")
                return DispatchResult.failure(
                    ProviderError("AI API connection failed", body=str(e), attempts=attempts)
                )

            try:
                payload = extract_json(text, request.json_shape)
            except ValueError as e:
                self.logger.error(
                    f"Failed to parse AI response for '{request.label}': {e}; "
                    f"text={text[:200]!r}"
                )
                return DispatchResult.failure(
                    MalformedResponseError(
                        raw_text=text[:MAX_BODY_CHARS], attempts=attempts
                    )
                )

            self.logger.debug(f"'{request.label}' succeeded after {attempts} attempt(s)")
            return DispatchResult.success(payload, attempts=attempts, raw_text=text)

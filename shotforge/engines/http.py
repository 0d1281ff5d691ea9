"""Outbound HTTP with exponential backoff, jitter and Retry-After support."""

from __future__ import annotations

import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import requests
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
)

from shotforge.common.config import Settings
from shotforge.common.logging import get_logger

logger = get_logger(__name__)

JITTER_RATIO = 0.25


@dataclass
class HttpRequest:
    """A vendor request, independent of any session."""

    method: str
    url: str
    json: Any = None
    data: bytes | None = None
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)


def is_retryable_status(status: int) -> bool:
    return status == 429 or status >= 500


def parse_retry_after(value: str | None, now: datetime | None = None) -> float | None:
    """Seconds to wait from a Retry-After header (delta-seconds or HTTP-date)."""
    if not value:
        return None

    value = value.strip()
    if value.isdigit():
        return float(value)

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0.0, (when - now).total_seconds())


class RetryingHttpClient:
    """Sends requests, retrying 429/5xx and connection failures.

    After the last attempt the final response is returned as-is so callers
    can inspect status and body. A connection failure on the last attempt is
    re-raised.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        timeout_seconds: float = 60.0,
        max_retries: int = 3,
        base_delay_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ):
        self.session = session or requests.Session()
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.base_delay_seconds = base_delay_seconds
        self._sleep = sleep
        self._rng = rng or random.Random()

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "RetryingHttpClient":
        return cls(
            timeout_seconds=settings.http_timeout_seconds,
            max_retries=settings.http_max_retries,
            base_delay_seconds=settings.http_base_delay_seconds,
            **kwargs,
        )

    def compute_delay(
        self,
        attempt: int,
        retry_after: str | None = None,
        base_delay: float | None = None,
    ) -> float:
        """Backoff for the given zero-based attempt, with ±25% jitter."""
        base = self.base_delay_seconds if base_delay is None else base_delay
        delay = base * (2**attempt)
        honored = parse_retry_after(retry_after)
        if honored is not None:
            delay = honored
        jitter = self._rng.uniform(-JITTER_RATIO, JITTER_RATIO)
        return max(0.0, delay + delay * jitter)

    def send(
        self,
        request: HttpRequest,
        max_retries: int | None = None,
        base_delay: float | None = None,
    ) -> requests.Response:
        """Send a request, making at most ``max_retries + 1`` attempts."""
        retries = max(0, self.max_retries if max_retries is None else max_retries)
        url = _redact(request.url)

        def wait(retry_state: RetryCallState) -> float:
            retry_after = None
            outcome = retry_state.outcome
            if outcome is not None and not outcome.failed:
                retry_after = outcome.result().headers.get("Retry-After")
            return self.compute_delay(retry_state.attempt_number - 1, retry_after, base_delay)

        def log_retry(retry_state: RetryCallState) -> None:
            outcome = retry_state.outcome
            if outcome.failed:
                detail = {"error": str(outcome.exception())}
            else:
                detail = {"status": outcome.result().status_code}
            logger.warning(
                "http_retry",
                url=url,
                attempt=retry_state.attempt_number,
                max_retries=retries,
                delay_seconds=round(retry_state.next_action.sleep, 3),
                **detail,
            )

        retrying = Retrying(
            stop=stop_after_attempt(retries + 1),
            wait=wait,
            retry=(
                retry_if_result(lambda response: is_retryable_status(response.status_code))
                | retry_if_exception_type((requests.ConnectionError, requests.Timeout))
            ),
            # Exhausted: hand back the last response, or re-raise the last error
            retry_error_callback=lambda retry_state: retry_state.outcome.result(),
            before_sleep=log_retry,
            sleep=self._sleep,
        )
        return retrying(self._request, request)

    def _request(self, request: HttpRequest) -> requests.Response:
        return self.session.request(
            request.method,
            request.url,
            json=request.json,
            data=request.data,
            headers=request.headers or None,
            params=request.params or None,
            timeout=self.timeout_seconds,
        )


def _redact(url: str) -> str:
    return url.split("?", 1)[0]

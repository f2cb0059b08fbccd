# === NAVMAP v1 ===
# {
#   "module": "ChannelResolve.net",
#   "purpose": "Build HTTPX clients for remote repositories and retry transient failures with tenacity",
#   "sections": [
#     {"id": "helpers", "name": "Client construction helpers", "anchor": "HELP", "kind": "helpers"},
#     {"id": "retry", "name": "Retry helpers", "anchor": "RETRY", "kind": "helpers"}
#   ]
# }
# === /NAVMAP ===

"""Shared HTTPX client construction and retry helpers for repository access."""

from __future__ import annotations

import logging
import random
import ssl
import time
from typing import Callable, Optional, TypeVar

import certifi
import httpx
from tenacity import Retrying, retry_if_exception, stop_after_attempt
from tenacity.wait import wait_base

from .settings import HttpSettings, RetrySettings

LOGGER = logging.getLogger(__name__)

RETRYABLE_HTTP_STATUSES = frozenset({408, 425, 429, 500, 502, 503, 504})

T = TypeVar("T")

# --- Client construction helpers ----------------------------------------------


def _build_ssl_context() -> ssl.SSLContext:
    context = ssl.create_default_context()
    context.load_verify_locations(certifi.where())
    return context


def build_http_client(
    settings: Optional[HttpSettings] = None,
    *,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    """Return an ``httpx.Client`` configured from ``settings``.

    ``transport`` replaces the network layer, which is how tests plug in
    :class:`httpx.MockTransport`.
    """

    settings = settings or HttpSettings()
    timeout = httpx.Timeout(settings.timeout_read, connect=settings.timeout_connect)
    kwargs = {
        "timeout": timeout,
        "headers": {"User-Agent": settings.user_agent},
        "follow_redirects": True,
        "trust_env": settings.trust_env,
    }
    if transport is not None:
        return httpx.Client(transport=transport, **kwargs)
    return httpx.Client(verify=_build_ssl_context(), **kwargs)


# --- Retry helpers ---------------------------------------------------------------


def is_retryable_error(exc: BaseException) -> bool:
    """Return ``True`` for timeouts, connection errors and transient HTTP statuses."""

    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response is not None and exc.response.status_code in RETRYABLE_HTTP_STATUSES
    return isinstance(exc, httpx.TransportError)


def retry_with_backoff(
    func: Callable[[], T],
    *,
    retryable: Callable[[BaseException], bool] = is_retryable_error,
    settings: Optional[RetrySettings] = None,
    jitter: float = 0.1,
    callback: Optional[Callable[[int, BaseException, float], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Execute ``func`` with exponential backoff until it succeeds.

    The final exception is re-raised unchanged once attempts are exhausted or
    when ``retryable`` rejects it.
    """

    settings = settings or RetrySettings()

    class _BackoffWait(wait_base):
        def __call__(self, retry_state) -> float:  # type: ignore[override]
            attempt_number = max(retry_state.attempt_number, 1)
            delay = settings.backoff_base * (2 ** (attempt_number - 1))
            if jitter > 0:
                delay += random.uniform(0.0, jitter)
            return max(min(delay, settings.backoff_max), 0.0)

    def _before_sleep(retry_state) -> None:
        if callback is None or retry_state.outcome is None or not retry_state.outcome.failed:
            return
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        callback(retry_state.attempt_number, retry_state.outcome.exception(), delay)

    retrying = Retrying(
        stop=stop_after_attempt(settings.max_attempts),
        wait=_BackoffWait(),
        retry=retry_if_exception(retryable),
        before_sleep=_before_sleep,
        sleep=sleep,
        reraise=True,
    )
    return retrying(func)

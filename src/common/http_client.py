"""Shared HTTP helpers used by registry clients.

Encapsulates common request/timeout error handling so modules avoid
duplicating try/except blocks. Transport failures surface as
``RegistryUnavailable`` instead of exiting the process, so callers decide
how a failed fetch affects the run.
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, Optional, Tuple

import requests

from constants import Constants
from common.errors import RegistryUnavailable
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)


def robust_get(
    url: str,
    *,
    session: Optional[requests.Session] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = Constants.REQUEST_TIMEOUT,
    retries: int = Constants.HTTP_RETRY_MAX,
    **kwargs: Any
) -> requests.Response:
    """Perform GET request with timeout and bounded retries with DEBUG traces.

    Connection errors, timeouts and 5xx responses are retried with
    exponential backoff. Any other status is returned to the caller.

    Raises:
        RegistryUnavailable: when every attempt failed.
    """
    safe_target = safe_url(url)
    getter = session.get if session is not None else requests.get
    attempts = max(1, retries)
    last_error = "no attempt made"

    for attempt in range(attempts):
        if attempt:
            time.sleep(Constants.HTTP_RETRY_BASE_DELAY_SEC * (2 ** (attempt - 1)))
        with Timer() as t:
            if is_debug_enabled(logger):
                logger.debug(
                    "HTTP request",
                    extra=extra_context(
                        event="http_request",
                        component="http_client",
                        action="GET",
                        target=safe_target,
                        attempt=attempt + 1
                    )
                )
            try:
                response = getter(url, timeout=timeout, headers=headers, **kwargs)
            except requests.Timeout:
                last_error = f"timed out after {timeout} seconds"
                logger.debug(
                    "HTTP timeout",
                    extra=extra_context(
                        event="http_exception",
                        component="http_client",
                        action="GET",
                        outcome="timeout",
                        attempt=attempt + 1,
                        target=safe_target
                    )
                )
                continue
            except requests.RequestException as exc:  # includes ConnectionError
                last_error = str(exc)
                logger.debug(
                    "HTTP request exception",
                    extra=extra_context(
                        event="http_exception",
                        component="http_client",
                        action="GET",
                        outcome="request_exception",
                        attempt=attempt + 1,
                        target=safe_target
                    )
                )
                continue

        if response.status_code >= 500:
            last_error = f"HTTP {response.status_code}"
            logger.warning(
                "HTTP server error; retrying",
                extra=extra_context(
                    event="http_response",
                    component="http_client",
                    outcome="server_error",
                    status_code=response.status_code,
                    attempt=attempt + 1,
                    target=safe_target
                )
            )
            continue

        if is_debug_enabled(logger):
            logger.debug(
                "HTTP response ok",
                extra=extra_context(
                    event="http_response",
                    component="http_client",
                    action="GET",
                    outcome="success",
                    status_code=response.status_code,
                    duration_ms=t.duration_ms(),
                    target=safe_target
                )
            )
        return response

    logger.error("GET %s failed after %d attempts: %s", safe_target, attempts, last_error)
    raise RegistryUnavailable(
        f"GET {safe_target} failed after {attempts} attempts: {last_error}"
    )


def get_json(
    url: str,
    **kwargs: Any
) -> Tuple[int, Dict[str, str], Optional[Any]]:
    """Perform GET request and parse JSON response.

    Args:
        url: Target URL
        **kwargs: Passed through to robust_get

    Returns:
        Tuple of (status_code, headers_dict, parsed_json_or_none)
    """
    response = robust_get(url, **kwargs)
    if response.status_code != 200 or not response.text:
        return response.status_code, dict(response.headers), None
    try:
        parsed = json.loads(response.text)
    except json.JSONDecodeError:
        if is_debug_enabled(logger):
            logger.debug(
                "JSON decode error",
                extra=extra_context(
                    event="parse",
                    component="http_client",
                    action="get_json",
                    outcome="json_decode_error",
                    status_code=response.status_code,
                    target=safe_url(url)
                )
            )
        return response.status_code, dict(response.headers), None
    return response.status_code, dict(response.headers), parsed


def get_bytes(url: str, **kwargs: Any) -> bytes:
    """Fetch raw response bytes, treating any non-200 status as unavailable."""
    response = robust_get(url, **kwargs)
    if response.status_code != 200:
        raise RegistryUnavailable(
            f"GET {safe_url(url)} returned HTTP {response.status_code}"
        )
    return response.content

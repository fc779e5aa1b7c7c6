"""Centralized logging helpers.

Provides a single ``configure_logging`` entry point plus the small helpers
used across modules for structured DEBUG traces (``extra_context``,
``is_debug_enabled``, ``Timer``) and for keeping credentials out of logs
(``safe_url``, ``redact``).
"""
from __future__ import annotations

import json
import logging
import os
import re
import time
import urllib.parse
from typing import Any, Dict, Optional

from constants import Constants

_CONFIGURED_HANDLER_ATTR = "_depnest_handler"

# Attributes present on every LogRecord; anything else came from ``extra``.
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

_SECRET_QUERY_KEYS = {"token", "access_token", "auth", "password", "key", "secret", "signature"}
_SECRET_PATTERN = re.compile(
    r"(?i)(authorization|token|password|secret)(\s*[=:]\s*)([^\s&,;]+)"
)


class JsonFormatter(logging.Formatter):
    """Render records as one JSON object per line, including extra fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging() -> None:
    """Configure the root logger once from the DEPNEST_LOG_* environment.

    DEPNEST_LOG_LEVEL selects the level (default INFO); DEPNEST_LOG_FORMAT=json
    switches to JSON lines. Calling this again replaces the handler it
    installed earlier instead of stacking a second one.
    """
    level_name = os.environ.get(f"{Constants.ENV_PREFIX}LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    fmt = os.environ.get(f"{Constants.ENV_PREFIX}LOG_FORMAT", "text").lower()

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _CONFIGURED_HANDLER_ATTR, False):
            root.removeHandler(handler)

    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(Constants.LOG_FORMAT))
    setattr(handler, _CONFIGURED_HANDLER_ATTR, True)
    root.addHandler(handler)
    root.setLevel(level)


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records from ``logger`` would be emitted."""
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build an ``extra`` mapping for structured log records.

    None values are dropped and keys colliding with LogRecord attributes are
    prefixed so logging never raises on them.
    """
    out: Dict[str, Any] = {}
    for key, value in fields.items():
        if value is None:
            continue
        if key in _RESERVED_ATTRS:
            key = f"ctx_{key}"
        out[key] = value
    return out


def safe_url(url: Optional[str]) -> str:
    """Strip userinfo and secret-looking query parameters from a URL."""
    if not url:
        return ""
    try:
        parts = urllib.parse.urlsplit(url)
    except ValueError:
        return redact(url)
    netloc = parts.netloc
    if "@" in netloc:
        netloc = "[REDACTED]@" + netloc.rsplit("@", 1)[1]
    query = parts.query
    if query:
        pairs = urllib.parse.parse_qsl(query, keep_blank_values=True)
        query = urllib.parse.urlencode(
            [(k, "[REDACTED]" if k.lower() in _SECRET_QUERY_KEYS else v) for k, v in pairs],
            safe="[]",
        )
    return urllib.parse.urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))


def redact(text: Optional[str]) -> str:
    """Mask values following credential-like keys in free text."""
    if not text:
        return ""
    return _SECRET_PATTERN.sub(lambda m: f"{m.group(1)}{m.group(2)}[REDACTED]", text)


class Timer:
    """Context manager measuring wall time in milliseconds."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        self._end = None
        return self

    def __exit__(self, *exc: Any) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> int:
        """Elapsed milliseconds, measured up to now while still running."""
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)

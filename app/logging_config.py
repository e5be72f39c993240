"""
logging_config.py
------------------

Shared logging configuration and helpers for structured logging across
the cost allocation service.  It uses Python's built‑in ``logging``
module rather than ``print`` so that output can be captured by
standard handlers or shipped to an external system.  Messages are
serialised as JSON strings with an ``event`` key to keep them easy to
parse downstream.

Import ``logger`` and call its methods instead of ``logging.info``
directly.  The ``log_call`` decorator records entry and exit points at
DEBUG level without leaking sensitive information such as API keys or
uploaded file contents.
"""

from __future__ import annotations

import inspect
import json
import logging
import sys
from decimal import Decimal
from functools import wraps
from typing import Any, Callable, Dict

# -----------------------------------------------------------------------------
# Configure global logging
# -----------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger("neteo")

_SENSITIVE_KEYS = ("token", "password", "secret", "apikey", "api_key", "authorization")


def _sanitize(obj: Any) -> Any:
    """Recursively sanitise objects for logging.

    Dictionaries lose keys that look like credentials, byte strings are
    replaced by a size marker, ``Decimal`` values become strings and
    Pydantic models are dumped before being sanitised.  Anything that
    still cannot be serialised is logged through its ``str``.
    """
    if isinstance(obj, (bytes, bytearray)):
        return f"<binary {len(obj)} bytes>"
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, dict):
        clean: Dict[str, Any] = {}
        for k, v in obj.items():
            if any(keyword in str(k).lower() for keyword in _SENSITIVE_KEYS):
                continue
            clean[k] = _sanitize(v)
        return clean
    if isinstance(obj, (list, tuple)):
        return [_sanitize(i) for i in obj]
    if hasattr(obj, "model_dump"):
        try:
            return _sanitize(obj.model_dump())
        except Exception:
            return str(obj)
    try:
        return json.loads(json.dumps(obj))
    except (TypeError, ValueError):
        return str(obj)


def log_call(func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator to log entry and exit of functions.

    Emits a ``call_start`` DEBUG event before the wrapped callable runs
    and a ``call_end`` event after it returns.  Arguments and return
    values go through :func:`_sanitize`.  Failures while building the
    log line never affect the call itself.

    Examples
    --------

    >>> @log_call
    ... def add(a, b):
    ...     return a + b
    """

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        if logger.isEnabledFor(logging.DEBUG):
            try:
                logger.debug(json.dumps({
                    "event": "call_start",
                    "function": func.__name__,
                    "args": _sanitize(args),
                    "kwargs": _sanitize(kwargs),
                }))
            except Exception:
                logger.debug(json.dumps({"event": "call_start", "function": func.__name__}))
        result = func(*args, **kwargs)
        if logger.isEnabledFor(logging.DEBUG):
            try:
                logger.debug(json.dumps({
                    "event": "call_end",
                    "function": func.__name__,
                    "result": _sanitize(result),
                }))
            except Exception:
                logger.debug(json.dumps({"event": "call_end", "function": func.__name__}))
        return result

    # FastAPI resolves annotations against the wrapper's globals, which are
    # this module's; hand it the already evaluated signature instead.
    try:
        wrapper.__signature__ = inspect.signature(func, eval_str=True)  # type: ignore[attr-defined]
    except NameError:
        wrapper.__signature__ = inspect.signature(func)  # type: ignore[attr-defined]
    return wrapper


def log_http_request(method: str, url: str, *, headers: Dict[str, Any] | None = None,
                     params: Dict[str, Any] | None = None, json_body: Any = None,
                     status: int | None = None, duration_ms: float | None = None) -> None:
    """Log an outbound HTTP request at DEBUG level.

    Credentials are removed from the headers and only high‑level
    information (method, URL, status and duration) is recorded.  The
    HTTP client calls this before and after performing requests.
    """
    data: Dict[str, Any] = {
        "event": "http_request",
        "method": method,
        "url": url,
    }
    if headers is not None:
        data["headers"] = {k: v for k, v in headers.items() if k.lower() not in {"authorization", "apikey"}}
    if params:
        data["params"] = _sanitize(params)
    if json_body:
        data["json"] = _sanitize(json_body)
    if status is not None:
        data["status"] = status
    if duration_ms is not None:
        data["duration_ms"] = round(duration_ms, 2)
    logger.debug(json.dumps(data))

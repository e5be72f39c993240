"""
clients/http_client.py
----------------------

HTTP client wrapper with connection pooling, timeouts, retries and a
simple circuit breaker. One instance is created per process in the
FastAPI lifespan event and shared by the catalog, registry and
ingestion clients. It uses ``httpx`` under the hood and honours the
settings defined in :mod:`app.core.config`.

Retries are applied exclusively to GET requests. Writes (PATCH,
POST, DELETE) are sent once and any error is propagated immediately,
so the commit orchestrator stays in control of compensation. Transport
failures and an open breaker surface as
:class:`~app.core.errors.ExternalServiceError`.
"""

from __future__ import annotations

import json
import time
from typing import Any, Dict, Optional
import httpx

from app.core.config import get_settings
from app.core.errors import ExternalServiceError
from app.logging_config import log_http_request, logger


class CircuitBreaker:
    """Per‑host circuit breaker.

    Tracks consecutive failures for each host and trips the breaker
    when the count reaches a threshold. The breaker resets after a
    cooldown period.
    """

    def __init__(self, failure_threshold: int = 5, reset_timeout: float = 60.0) -> None:
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._failures: Dict[str, int] = {}
        self._tripped_until: Dict[str, float] = {}

    def record_failure(self, host: str) -> None:
        self._failures[host] = self._failures.get(host, 0) + 1
        if self._failures[host] >= self.failure_threshold:
            self._tripped_until[host] = time.time() + self.reset_timeout

    def record_success(self, host: str) -> None:
        self._failures.pop(host, None)
        self._tripped_until.pop(host, None)

    def can_request(self, host: str) -> bool:
        until = self._tripped_until.get(host)
        if until is None:
            return True
        if time.time() >= until:
            self._tripped_until.pop(host, None)
            self._failures.pop(host, None)
            return True
        return False


class HTTPClient:
    """Shared HTTP client with retry and circuit breaker.

    ``transport`` is forwarded to ``httpx.Client`` and lets tests plug
    an ``httpx.MockTransport`` in place of the network.
    """

    def __init__(self, transport: Optional[httpx.BaseTransport] = None) -> None:
        settings = get_settings()
        self.timeout = settings.http_timeout
        self._client = httpx.Client(timeout=self.timeout, transport=transport)
        self._breaker = CircuitBreaker()
        self.max_retries = settings.http_max_retries
        self.backoff_factor = settings.http_backoff_factor

    def close(self) -> None:
        """Close the underlying HTTPX client and release resources."""
        self._client.close()

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Perform a single HTTP request without retries."""
        host = httpx.URL(url).host
        if not self._breaker.can_request(host):
            raise ExternalServiceError(f"Servicio no disponible temporalmente ({host})", paso="http")
        start = time.time()
        log_http_request(method, url, headers=kwargs.get("headers"), params=kwargs.get("params"),
                         json_body=kwargs.get("json"))
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError:
            self._breaker.record_failure(host)
            raise
        if 500 <= response.status_code < 600:
            self._breaker.record_failure(host)
        else:
            self._breaker.record_success(host)
        log_http_request(method, url, status=response.status_code, duration_ms=(time.time() - start) * 1000)
        return response

    def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """Perform a GET request with retries and exponential backoff."""
        last_exc: Optional[httpx.HTTPError] = None
        for attempt in range(self.max_retries + 1):
            try:
                return self._request("GET", url, **kwargs)
            except httpx.HTTPError as exc:
                last_exc = exc
                if attempt >= self.max_retries:
                    break
                time.sleep(self.backoff_factor * (2 ** attempt))
        raise ExternalServiceError(f"No se pudo contactar {url}: {last_exc}", paso="http")

    def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Public request method.

        GET requests are retried; other methods are performed once.
        Transport errors on writes are raised as ``ExternalServiceError``.
        """
        method_upper = method.upper()
        if method_upper == "GET":
            return self.get(url, **kwargs)
        try:
            return self._request(method_upper, url, **kwargs)
        except httpx.HTTPError as exc:
            raise ExternalServiceError(f"Error de red en {method_upper} {url}: {exc}", paso="http") from exc


def ensure_ok(response: httpx.Response, *, paso: str, mensaje: str) -> httpx.Response:
    """Raise ``ExternalServiceError`` unless ``response`` is a 2xx."""
    if 200 <= response.status_code < 300:
        return response
    logger.error(json.dumps({
        "event": "servicio_externo_error",
        "paso": paso,
        "status_code": response.status_code,
        "detalle": response.text[:500],
    }))
    raise ExternalServiceError(mensaje, paso=paso, extra={"status_code": response.status_code})

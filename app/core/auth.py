"""
core/auth.py
-------------

Helpers for building authenticated requests to the catalog store.

The catalog store is a PostgREST-style API: it expects the service key
both as an ``apikey`` header and as a bearer token, and it reads a
``Prefer`` header to decide whether to return rows or exact counts.
Centralising header construction here keeps the key out of every other
module (and out of the logs, see :mod:`app.logging_config`).
"""

from __future__ import annotations

from typing import Dict, Optional

from app.core.config import get_settings


def get_catalog_url(table: str) -> str:
    """Return the endpoint of a catalog table, without trailing slash.

    :param table: table name such as ``products`` or ``dispatches``
    """
    base = get_settings().catalog_url.rstrip("/")
    return f"{base}/{table}"


def build_catalog_headers(prefer: Optional[str] = None) -> Dict[str, str]:
    """Create the headers required for a catalog call.

    :param prefer: optional value for the ``Prefer`` header, e.g.
        ``return=representation`` or ``count=exact``
    """
    api_key = get_settings().catalog_api_key
    headers = {
        "apikey": api_key,
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
        "Accept": "application/json",
    }
    if prefer:
        headers["Prefer"] = prefer
    return headers

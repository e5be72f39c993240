"""
core/context.py
----------------

Per-user context cache and company (tenant) resolution.

Dispatches and product lines belong to a company. The company of a
user is looked up once in the registry's ``profiles`` table and cached
in ``user_context``. There is deliberately no default company: when a
user cannot be tied to one, creating a dispatch fails with
:class:`~app.core.errors.ConsistencyError`.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional, TYPE_CHECKING

from app.core.errors import ConsistencyError
from app.logging_config import logger

if TYPE_CHECKING:
    from app.clients.dispatch_registry import DispatchRegistry

user_context: Dict[str, Dict[str, Any]] = {}


def set_user_context(usuario: str, ctx: Dict[str, Any]) -> None:
    user_context[usuario] = ctx


def get_user_context(usuario: str) -> Dict[str, Any] | None:
    return user_context.get(usuario)


def buscar_compania(usuario: str, registry: "DispatchRegistry") -> Optional[str]:
    """Return the user's company id, consulting the registry on a cache miss."""
    ctx = get_user_context(usuario) or {}
    if ctx.get("company_id"):
        return ctx["company_id"]
    company_id = registry.company_for_user(usuario)
    if company_id:
        set_user_context(usuario, {**ctx, "company_id": company_id})
    return company_id


def resolver_compania(usuario: str, registry: "DispatchRegistry", paso: str = "crear_despacho") -> str:
    company_id = buscar_compania(usuario, registry)
    if not company_id:
        logger.warning(json.dumps({
            "event": "compania_no_resuelta",
            "usuario": usuario,
            "paso": paso,
        }))
        raise ConsistencyError(
            f"No se pudo asociar al usuario '{usuario}' con una compañía",
            paso=paso,
        )
    return company_id

"""
services/dispatch_service.py
---------------------------

Dispatch registry operations used by the first wizard step: searching
the dispatch list, creating a new dispatch for the user's company and
deleting a dispatch together with all of its product lines.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from app.clients.catalog_client import ProductCatalogStore
from app.clients.dispatch_registry import DispatchRegistry
from app.core.config import get_settings
from app.core.context import buscar_compania, resolver_compania
from app.core.errors import LeaseConflictError, ValidationError
from app.logging_config import logger, log_call
from app.schemas.dispatch import Dispatch, DispatchDraft, DispatchPage, DispatchStatus
from app.services.lease_service import LeaseManager


@log_call
def buscar_despachos(
    usuario: str,
    registry: DispatchRegistry,
    search: str = "",
    page: int = 0,
    page_size: Optional[int] = None,
) -> DispatchPage:
    settings = get_settings()
    page_size = page_size or settings.page_sizes[0]
    if page_size not in settings.page_sizes:
        raise ValidationError(
            f"Tamaño de página inválido; use uno de {settings.page_sizes}",
            paso="buscar_despachos",
        )
    if page < 0:
        raise ValidationError("La página no puede ser negativa", paso="buscar_despachos")
    company_id = buscar_compania(usuario, registry)
    resultado = registry.search((search or "").strip(), page, page_size, company_id=company_id)
    logger.info(json.dumps({
        "event": "buscar_despachos",
        "usuario": usuario,
        "search": search,
        "page": page,
        "page_size": page_size,
        "total": resultado.total_count,
    }))
    return resultado


@log_call
def crear_despacho(data: DispatchDraft, registry: DispatchRegistry) -> Dispatch:
    """Create a dispatch in ``new`` status for the user's company.

    :raises ConsistencyError: if the user has no resolvable company
    """
    company_id = resolver_compania(data.usuario, registry, paso="crear_despacho")
    draft = Dispatch(
        dispatch_number=data.dispatch_number,
        description=data.description or "",
        origin=data.origin or get_settings().default_origin,
        status=DispatchStatus.NEW,
        company_id=company_id,
    )
    creado = registry.create(draft)
    logger.info(json.dumps({
        "event": "crear_despacho",
        "usuario": data.usuario,
        "dispatch_id": creado.id,
        "dispatch_number": creado.dispatch_number,
        "company_id": company_id,
    }))
    return creado


@log_call
def eliminar_despacho(
    usuario: str,
    dispatch_id: int | str,
    confirmar: bool,
    registry: DispatchRegistry,
    catalog: ProductCatalogStore,
    leases: LeaseManager,
) -> Dict[str, Any]:
    """Delete a dispatch and, first, every product line that belongs to it.

    Irreversible, so ``confirmar`` must be explicitly true.
    """
    if not confirmar:
        raise ValidationError(
            "La eliminación del despacho y de sus productos requiere confirmación",
            paso="eliminar_despacho",
        )
    despacho = registry.get(dispatch_id)
    if leases.holder(despacho.dispatch_number):
        raise LeaseConflictError(
            "El despacho está siendo neteado en otra sesión",
            paso="eliminar_despacho",
        )
    eliminados = catalog.delete_by_dispatch(despacho.dispatch_number)
    registry.delete(dispatch_id)
    logger.info(json.dumps({
        "event": "eliminar_despacho",
        "usuario": usuario,
        "dispatch_id": dispatch_id,
        "dispatch_number": despacho.dispatch_number,
        "productos_eliminados": eliminados,
    }))
    return {
        "mensaje": "Despacho eliminado",
        "dispatch_number": despacho.dispatch_number,
        "productos_eliminados": eliminados,
    }

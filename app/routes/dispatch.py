"""
routes/dispatch.py
-------------------

API routes for the dispatch list: search with paging, creation of a
new dispatch for the user's company, and cascading deletion.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.logging_config import logger, log_call
import json
from app.clients.catalog_client import ProductCatalogStore
from app.clients.dispatch_registry import DispatchRegistry
from app.routes.deps import get_catalog, get_leases, get_registry
from app.schemas.dispatch import DispatchDraft
from app.services.dispatch_service import buscar_despachos, crear_despacho, eliminar_despacho
from app.services.lease_service import LeaseManager


router = APIRouter(prefix="/despachos", tags=["Despachos"])


@router.get("", summary="Buscar despachos por número")
@log_call
def get_despachos(
    usuario: str,
    search: str = "",
    page: int = Query(0, ge=0),
    page_size: Optional[int] = None,
    registry: DispatchRegistry = Depends(get_registry),
):
    return buscar_despachos(usuario, registry, search=search, page=page, page_size=page_size)


@router.post("", status_code=201, summary="Crear un despacho nuevo")
@log_call
def post_despacho(data: DispatchDraft, registry: DispatchRegistry = Depends(get_registry)):
    logger.info(json.dumps({
        "event": "crear_despacho_request",
        "usuario": data.usuario,
        "dispatch_number": data.dispatch_number,
    }))
    try:
        return crear_despacho(data, registry)
    except Exception as e:
        logger.error(json.dumps({
            "event": "crear_despacho_error",
            "usuario": data.usuario,
            "detalle": str(e),
        }), exc_info=True)
        raise


@router.delete("/{dispatch_id}", summary="Eliminar un despacho y sus productos")
@log_call
def delete_despacho(
    dispatch_id: str,
    usuario: str,
    confirmar: bool = False,
    registry: DispatchRegistry = Depends(get_registry),
    catalog: ProductCatalogStore = Depends(get_catalog),
    leases: LeaseManager = Depends(get_leases),
):
    """Elimina el despacho y, antes, todos sus productos. Requiere ``confirmar=true``."""
    try:
        return eliminar_despacho(usuario, dispatch_id, confirmar, registry, catalog, leases)
    except Exception as e:
        logger.error(json.dumps({
            "event": "eliminar_despacho_error",
            "usuario": usuario,
            "dispatch_id": dispatch_id,
            "detalle": str(e),
        }), exc_info=True)
        raise

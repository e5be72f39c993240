"""
routes/neteo.py
----------------

API routes for the cost allocation wizard. The three screens of the
wizard map onto these endpoints:

1. select the dispatch group (``/principal``, ``/secundario``,
   ``/confirmar``);
2. upload the documents (``/documentos``, primary first);
3. enter costs, calculate the margin and commit (``/costos``,
   ``/utilidad``, ``/netear``).

``/volver`` steps back one screen and ``DELETE`` on the session
abandons the run, giving back its dispatch leases.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from app.logging_config import logger, log_call
import json
from app.clients.catalog_client import ProductCatalogStore
from app.clients.dispatch_registry import DispatchRegistry
from app.clients.ingestion_client import DocumentIngestionService
from app.routes.deps import get_catalog, get_ingestion, get_leases, get_registry, get_sessions
from app.schemas.costs import CostEntry, NormalizarRequest
from app.schemas.wizard import NuevaSesionRequest, SeleccionRequest
from app.services import wizard_service
from app.services.commit_service import netear_costos
from app.services.lease_service import LeaseManager
from app.session import SessionStore
from app.utils.money import normalizar_entrada


router = APIRouter(prefix="/neteo", tags=["Neteo de costos"])


@router.post("/normalizar", summary="Normalizar una tecla del monto ingresado")
def post_normalizar(data: NormalizarRequest):
    entrada = normalizar_entrada(data.buffer, data.tecla)
    return {"buffer": entrada.buffer, "display": entrada.display, "valor": float(entrada.valor)}


@router.post("/sesiones", status_code=201, summary="Iniciar un neteo")
@log_call
def post_sesion(data: NuevaSesionRequest, registry: DispatchRegistry = Depends(get_registry),
                store: SessionStore = Depends(get_sessions)):
    return wizard_service.iniciar_sesion(data.usuario, registry, store)


@router.get("/sesiones/{session_id}")
def get_sesion(session_id: str, store: SessionStore = Depends(get_sessions)):
    return store.get(session_id)


@router.delete("/sesiones/{session_id}", summary="Abandonar el neteo")
def delete_sesion(session_id: str, leases: LeaseManager = Depends(get_leases),
                  store: SessionStore = Depends(get_sessions)):
    wizard_service.abandonar(store.get(session_id), leases, store)
    return {"mensaje": "Sesión abandonada"}


@router.post("/sesiones/{session_id}/principal", summary="Seleccionar el despacho principal")
@log_call
def post_principal(session_id: str, data: SeleccionRequest, registry: DispatchRegistry = Depends(get_registry),
                   leases: LeaseManager = Depends(get_leases), store: SessionStore = Depends(get_sessions)):
    return wizard_service.elegir_principal(store.get(session_id), data.dispatch_id, registry, leases, store)


@router.post("/sesiones/{session_id}/secundario/iniciar", summary="Agregar un segundo despacho al grupo")
def post_iniciar_secundario(session_id: str, leases: LeaseManager = Depends(get_leases),
                            store: SessionStore = Depends(get_sessions)):
    return wizard_service.agregar_secundario(store.get(session_id), leases, store)


@router.get("/sesiones/{session_id}/secundario/candidatos", summary="Despachos disponibles como secundario")
def get_candidatos(
    session_id: str,
    search: str = "",
    page: int = Query(0, ge=0),
    page_size: int = Query(10, ge=1, le=500),
    registry: DispatchRegistry = Depends(get_registry),
    store: SessionStore = Depends(get_sessions),
):
    return wizard_service.listar_candidatos(store.get(session_id), registry, search, page, page_size)


@router.post("/sesiones/{session_id}/secundario", summary="Seleccionar el despacho secundario")
@log_call
def post_secundario(session_id: str, data: SeleccionRequest, registry: DispatchRegistry = Depends(get_registry),
                    leases: LeaseManager = Depends(get_leases), store: SessionStore = Depends(get_sessions)):
    return wizard_service.elegir_secundario(store.get(session_id), data.dispatch_id, registry, leases, store)


@router.delete("/sesiones/{session_id}/secundario", summary="Quitar el despacho secundario")
def delete_secundario(session_id: str, leases: LeaseManager = Depends(get_leases),
                      store: SessionStore = Depends(get_sessions)):
    return wizard_service.eliminar_secundario(store.get(session_id), leases, store)


@router.post("/sesiones/{session_id}/confirmar", summary="Confirmar el grupo de despachos")
def post_confirmar(session_id: str, leases: LeaseManager = Depends(get_leases),
                   store: SessionStore = Depends(get_sessions)):
    return wizard_service.confirmar(store.get(session_id), leases, store)


@router.post("/sesiones/{session_id}/documentos", summary="Subir el archivo de productos de un despacho")
def post_documento(
    session_id: str,
    rol: str = Form("primary"),
    file: UploadFile = File(...),
    ingestion: DocumentIngestionService = Depends(get_ingestion),
    leases: LeaseManager = Depends(get_leases),
    store: SessionStore = Depends(get_sessions),
):
    session = store.get(session_id)
    logger.info(json.dumps({
        "event": "subir_documento_request",
        "sesion": session_id,
        "usuario": session.usuario,
        "rol": rol,
        "archivo": file.filename,
    }))
    try:
        return wizard_service.subir_documento(
            session,
            rol,
            filename=file.filename or "productos.xlsx",
            content=file.file.read(),
            content_type=file.content_type,
            ingestion=ingestion,
            leases=leases,
            store=store,
        )
    except Exception as e:
        logger.error(json.dumps({
            "event": "subir_documento_error",
            "sesion": session_id,
            "rol": rol,
            "detalle": str(e),
        }), exc_info=True)
        raise


@router.put("/sesiones/{session_id}/costos", summary="Guardar tipo de cambio y costos")
def put_costos(session_id: str, data: CostEntry, store: SessionStore = Depends(get_sessions)):
    return wizard_service.ingresar_costos(store.get(session_id), data, store)


@router.post("/sesiones/{session_id}/utilidad", summary="Calcular la utilidad (23%)")
@log_call
def post_utilidad(session_id: str, data: Optional[CostEntry] = None, store: SessionStore = Depends(get_sessions)):
    resumen = wizard_service.calcular_utilidad(store.get(session_id), store, data)
    return {"resumen": resumen, "formateado": resumen.formateado()}


@router.post("/sesiones/{session_id}/netear", summary="Distribuir los costos y guardar los precios")
@log_call
def post_netear(
    session_id: str,
    catalog: ProductCatalogStore = Depends(get_catalog),
    registry: DispatchRegistry = Depends(get_registry),
    leases: LeaseManager = Depends(get_leases),
    store: SessionStore = Depends(get_sessions),
):
    session = store.get(session_id)
    try:
        resultado = netear_costos(session, catalog, registry, leases, store)
    except Exception as e:
        logger.error(json.dumps({
            "event": "netear_costos_error",
            "sesion": session_id,
            "usuario": session.usuario,
            "detalle": str(e),
        }), exc_info=True)
        raise
    logger.info(json.dumps({
        "event": "netear_costos_response",
        "sesion": session_id,
        "productos_actualizados": resultado.productos_actualizados,
    }))
    return resultado


@router.post("/sesiones/{session_id}/volver", summary="Volver al paso anterior")
def post_volver(session_id: str, leases: LeaseManager = Depends(get_leases),
                store: SessionStore = Depends(get_sessions)):
    return wizard_service.retroceder(store.get(session_id), leases, store)

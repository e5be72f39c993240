"""
services/wizard_service.py
--------------------------

Dispatch aggregator: the state machine that groups one or two
dispatches into a pool, drives their document upload and resumes an
allocation at the right step.

The first half of the module holds the pure transition functions; each
takes the current state and returns the next one, raising
``TransitionError`` when the move is not allowed. The second half
applies them to a stored :class:`WizardSession`, talking to the
registry and the ingestion service and taking or giving back the
dispatch leases.

Resuming a dispatch that is ``pending`` or ``completed`` always starts
a single-dispatch pool: the pairing with a secondary dispatch is not
persisted anywhere, so it cannot be recovered.
"""

from __future__ import annotations

import json
from typing import List, Optional, Sequence

from app.clients.dispatch_registry import DispatchRegistry
from app.clients.ingestion_client import DocumentIngestionService
from app.core.context import buscar_compania
from app.core.errors import TransitionError, ValidationError
from app.logging_config import logger, log_call
from app.schemas.costs import CostEntry, CostSummary, CommitSummary
from app.schemas.dispatch import Dispatch, DispatchPage, DispatchStatus, IngestionResult
from app.schemas.wizard import (
    ROL_PRINCIPAL,
    ROL_SECUNDARIO,
    GrupoConfirmado,
    IngresandoCostos,
    Neteado,
    SeleccionandoPrincipal,
    SeleccionandoSecundario,
    Subiendo,
    WizardSession,
)
from app.services.costing_service import calcular_resumen
from app.services.lease_service import LeaseManager
from app.session import SessionStore

RESUMIBLES = {DispatchStatus.PENDING, DispatchStatus.COMPLETED}


def _rechazar(estado, accion: str) -> TransitionError:
    return TransitionError(f"No se puede {accion} en el paso '{estado.paso}'", paso=estado.paso)


def mismo_despacho(a: Dispatch, b: Dispatch) -> bool:
    if a.id is not None and b.id is not None:
        return str(a.id) == str(b.id)
    return a.dispatch_number == b.dispatch_number


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

def seleccionar_principal(estado, despacho: Dispatch):
    if not isinstance(estado, SeleccionandoPrincipal):
        raise _rechazar(estado, "seleccionar el despacho principal")
    if despacho.status in RESUMIBLES:
        return IngresandoCostos(principal=despacho, reanudado=True)
    return GrupoConfirmado(principal=despacho)


def iniciar_seleccion_secundario(estado):
    if not isinstance(estado, GrupoConfirmado):
        raise _rechazar(estado, "agregar un despacho secundario")
    return SeleccionandoSecundario(principal=estado.principal)


def candidatos_secundarios(rows: Sequence[Dispatch], principal: Dispatch) -> List[Dispatch]:
    return [d for d in rows if not mismo_despacho(d, principal)]


def seleccionar_secundario(estado, despacho: Dispatch):
    if not isinstance(estado, SeleccionandoSecundario):
        raise _rechazar(estado, "seleccionar el despacho secundario")
    if mismo_despacho(despacho, estado.principal):
        raise ValidationError("Un despacho no puede agruparse consigo mismo", paso=estado.paso)
    return GrupoConfirmado(principal=estado.principal, secundario=despacho)


def quitar_secundario(estado):
    if not isinstance(estado, (GrupoConfirmado, SeleccionandoSecundario)):
        raise _rechazar(estado, "quitar el despacho secundario")
    return GrupoConfirmado(principal=estado.principal)


def confirmar_grupo(estado):
    if not isinstance(estado, GrupoConfirmado):
        raise _rechazar(estado, "confirmar el grupo")
    return Subiendo(principal=estado.principal, secundario=estado.secundario)


def registrar_subida(estado, rol: str, resultado: IngestionResult):
    """Record the ingestion acknowledgement of one pool member.

    The primary must be acknowledged before the secondary. Once every
    member is acknowledged the wizard moves on to cost entry.
    """
    if not isinstance(estado, Subiendo):
        raise _rechazar(estado, "subir documentos")
    if rol not in estado.roles():
        raise ValidationError(f"Rol de despacho inválido: {rol}", paso=estado.paso)
    if rol == ROL_SECUNDARIO and ROL_PRINCIPAL not in estado.subidos:
        raise ValidationError("Primero debe subirse el archivo del despacho principal", paso=estado.paso)
    actualizado = _despacho_de(estado, rol).model_copy(update={
        "id": resultado.dispatch_id,
        "status": DispatchStatus.PENDING,
        "total_fob_usd": resultado.total_fob_usd,
    })
    subidos = {**estado.subidos, rol: resultado}
    principal = actualizado if rol == ROL_PRINCIPAL else estado.principal
    secundario = actualizado if rol == ROL_SECUNDARIO else estado.secundario
    siguiente = Subiendo(principal=principal, secundario=secundario, subidos=subidos)
    if not siguiente.pendientes():
        return IngresandoCostos(principal=principal, secundario=secundario)
    return siguiente


def _despacho_de(estado, rol: str) -> Dispatch:
    return estado.principal if rol == ROL_PRINCIPAL else estado.secundario


def registrar_neteo(estado, resultado: CommitSummary):
    if not isinstance(estado, IngresandoCostos):
        raise _rechazar(estado, "netear costos")
    return Neteado(principal=estado.principal, secundario=estado.secundario, resultado=resultado)


def volver(estado):
    """Step back one screen. Nothing persisted upstream is undone."""
    if isinstance(estado, (GrupoConfirmado, Neteado)):
        return SeleccionandoPrincipal()
    if isinstance(estado, SeleccionandoSecundario):
        return GrupoConfirmado(principal=estado.principal)
    if isinstance(estado, Subiendo):
        return GrupoConfirmado(principal=estado.principal, secundario=estado.secundario)
    if isinstance(estado, IngresandoCostos):
        if estado.reanudado:
            return SeleccionandoPrincipal()
        return Subiendo(principal=estado.principal, secundario=estado.secundario)
    raise _rechazar(estado, "volver")


# ---------------------------------------------------------------------------
# Session operations
# ---------------------------------------------------------------------------

def lease_keys(estado) -> List[str]:
    return [d.dispatch_number for d in estado.miembros()]


def _avanzar(session: WizardSession, nuevo, leases: LeaseManager, store: SessionStore) -> WizardSession:
    """Store ``nuevo`` as the session state, handling leases on the way."""
    anterior = session.estado
    if isinstance(nuevo, IngresandoCostos) and not isinstance(anterior, IngresandoCostos):
        leases.acquire(lease_keys(nuevo), session.id)
        session.costos = CostEntry()
        session.utilidad = None
    if isinstance(anterior, IngresandoCostos) and not isinstance(nuevo, (IngresandoCostos, Neteado)):
        leases.release(session.id)
    session.estado = nuevo
    store.save(session)
    logger.info(json.dumps({
        "event": "wizard_transicion",
        "sesion": session.id,
        "usuario": session.usuario,
        "desde": anterior.paso,
        "hacia": nuevo.paso,
    }))
    return session


@log_call
def iniciar_sesion(usuario: str, registry: DispatchRegistry, store: SessionStore) -> WizardSession:
    session = store.create(usuario, company_id=buscar_compania(usuario, registry))
    logger.info(json.dumps({"event": "wizard_inicio", "sesion": session.id, "usuario": usuario}))
    return session


@log_call
def elegir_principal(session: WizardSession, dispatch_id: int | str, registry: DispatchRegistry,
                     leases: LeaseManager, store: SessionStore) -> WizardSession:
    despacho = registry.get(dispatch_id)
    return _avanzar(session, seleccionar_principal(session.estado, despacho), leases, store)


def agregar_secundario(session: WizardSession, leases: LeaseManager, store: SessionStore) -> WizardSession:
    return _avanzar(session, iniciar_seleccion_secundario(session.estado), leases, store)


@log_call
def listar_candidatos(session: WizardSession, registry: DispatchRegistry, search: str = "",
                      page: int = 0, page_size: int = 10) -> DispatchPage:
    estado = session.estado
    if not isinstance(estado, SeleccionandoSecundario):
        raise _rechazar(estado, "listar despachos secundarios")
    pagina = registry.search((search or "").strip(), page, page_size, company_id=session.company_id)
    filas = candidatos_secundarios(pagina.rows, estado.principal)
    excluidos = len(pagina.rows) - len(filas)
    return pagina.model_copy(update={"rows": filas, "total_count": max(pagina.total_count - excluidos, 0)})


@log_call
def elegir_secundario(session: WizardSession, dispatch_id: int | str, registry: DispatchRegistry,
                      leases: LeaseManager, store: SessionStore) -> WizardSession:
    despacho = registry.get(dispatch_id)
    return _avanzar(session, seleccionar_secundario(session.estado, despacho), leases, store)


def eliminar_secundario(session: WizardSession, leases: LeaseManager, store: SessionStore) -> WizardSession:
    return _avanzar(session, quitar_secundario(session.estado), leases, store)


def confirmar(session: WizardSession, leases: LeaseManager, store: SessionStore) -> WizardSession:
    return _avanzar(session, confirmar_grupo(session.estado), leases, store)


@log_call
def subir_documento(
    session: WizardSession,
    rol: str,
    *,
    filename: str,
    content: bytes,
    content_type: Optional[str],
    ingestion: DocumentIngestionService,
    leases: LeaseManager,
    store: SessionStore,
) -> WizardSession:
    """Send one pool member's spreadsheet to the ingestion service.

    Uploads are strictly sequential: the secondary's file is only
    accepted after the primary's has been acknowledged.
    """
    estado = session.estado
    if not isinstance(estado, Subiendo):
        raise _rechazar(estado, "subir documentos")
    if not content:
        raise ValidationError("El archivo está vacío", paso=estado.paso)
    if rol not in estado.roles():
        raise ValidationError(f"Rol de despacho inválido: {rol}", paso=estado.paso)
    if rol == ROL_SECUNDARIO and ROL_PRINCIPAL not in estado.subidos:
        raise ValidationError("Primero debe subirse el archivo del despacho principal", paso=estado.paso)
    despacho = _despacho_de(estado, rol)
    if not despacho.company_id and session.company_id:
        despacho = despacho.model_copy(update={"company_id": session.company_id})
    resultado = ingestion.upload(
        despacho,
        filename=filename,
        content=content,
        content_type=content_type,
        rol=rol,
        tamano_pool=len(estado.roles()),
    )
    return _avanzar(session, registrar_subida(estado, rol, resultado), leases, store)


def ingresar_costos(session: WizardSession, entry: CostEntry, store: SessionStore) -> WizardSession:
    if not isinstance(session.estado, IngresandoCostos):
        raise _rechazar(session.estado, "ingresar costos")
    session.costos = entry
    store.save(session)
    return session


@log_call
def calcular_utilidad(session: WizardSession, store: SessionStore, entry: Optional[CostEntry] = None) -> CostSummary:
    """Explicit margin step; the figures are shown for review before committing."""
    estado = session.estado
    if not isinstance(estado, IngresandoCostos):
        raise _rechazar(estado, "calcular la utilidad")
    if entry is not None:
        session.costos = entry
    session.utilidad = calcular_resumen(estado.miembros(), session.costos, paso="utilidad")
    store.save(session)
    return session.utilidad


def retroceder(session: WizardSession, leases: LeaseManager, store: SessionStore) -> WizardSession:
    return _avanzar(session, volver(session.estado), leases, store)


def abandonar(session: WizardSession, leases: LeaseManager, store: SessionStore) -> None:
    """Abandon the run: stop a commit that has not reached its write phase."""
    session.cancelado = True
    leases.release(session.id)
    store.discard(session.id)
    logger.info(json.dumps({"event": "wizard_abandono", "sesion": session.id, "usuario": session.usuario}))

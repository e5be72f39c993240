"""
services/commit_service.py
--------------------------

Commit orchestrator ("netear costos").

The commit is staged so that it either applies completely or leaves
the catalog and the registry as they were:

1. validate the inputs that need no network call (exchange rate,
   explicit margin step, lease still held);
2. re-fetch the pool's product lines from the catalog;
3. recompute the cost summary and the allocation, validating every
   line before anything is written;
4. last checkpoint: if the session was abandoned, stop here;
5. write ``(price, neto)`` row by row, remembering each row's previous
   values; on the first failure restore the rows already written and
   stop;
6. only when every row was written, mark each dispatch ``completed``
   with its own FOB totals; if that fails, revert the dispatches already
   advanced and restore the products.

The lease on the pool is released once the commit succeeds.
"""

from __future__ import annotations

import json
from typing import Callable, List, Tuple

from app.clients.catalog_client import ProductCatalogStore
from app.clients.dispatch_registry import DispatchRegistry
from app.core.errors import ExternalServiceError, NotFoundError, ValidationError
from app.logging_config import logger, log_call
from app.schemas.costs import AllocationLine, CommitSummary, CostSummary
from app.schemas.dispatch import Dispatch, DispatchStatus, FobTotals
from app.schemas.products import PriceUpdate, ProductLine
from app.schemas.wizard import IngresandoCostos, WizardSession
from app.services.allocation_service import distribuir
from app.services.costing_service import calcular_resumen, validar_tipo_de_cambio
from app.services.lease_service import LeaseManager
from app.services.wizard_service import lease_keys, registrar_neteo
from app.session import SessionStore
from app.utils.money import formatear_monto

PASO = "neteo"


class CommitAborted(ValidationError):
    """The session was abandoned before the write phase."""


def _snapshot(productos: List[ProductLine]) -> List[PriceUpdate]:
    return [PriceUpdate(id=p.id, price=p.price, neto=p.neto) for p in productos]


def _restaurar(catalog: ProductCatalogStore, previos: List[PriceUpdate]) -> List[str]:
    """Write back the previous values; return the ids that could not be restored."""
    fallidos: List[str] = []
    for previo in reversed(previos):
        try:
            catalog.update_price(previo)
        except ExternalServiceError as exc:
            fallidos.append(str(previo.id))
            logger.error(json.dumps({
                "event": "neteo_compensacion_error",
                "product_id": previo.id,
                "detalle": str(exc),
            }))
    return fallidos


def aplicar_precios(catalog: ProductCatalogStore, productos: List[ProductLine],
                    lineas: List[AllocationLine]) -> List[PriceUpdate]:
    """Apply every allocation line or none of them.

    Returns the snapshot of previous values so a later failure can
    still be compensated.
    """
    previos_por_id = {str(p.id): prev for p, prev in zip(productos, _snapshot(productos))}
    escritos: List[PriceUpdate] = []
    for i, linea in enumerate(lineas, start=1):
        try:
            catalog.update_price(PriceUpdate(id=linea.product_id, price=linea.unit_price_local,
                                             neto=linea.extended_value_local))
        except ExternalServiceError as exc:
            logger.error(json.dumps({
                "event": "neteo_producto_error",
                "product_id": linea.product_id,
                "posicion": i,
                "total": len(lineas),
                "detalle": str(exc),
            }))
            no_restaurados = _restaurar(catalog, escritos)
            raise ExternalServiceError(
                f"Error al actualizar el producto {linea.product_id}; no se aplicó ningún cambio",
                paso=PASO,
                extra={"product_id": linea.product_id, "no_restaurados": no_restaurados},
            ) from exc
        escritos.append(previos_por_id[str(linea.product_id)])
    return escritos


def completar_despachos(registry: DispatchRegistry, despachos: List[Dispatch],
                        resumen: CostSummary) -> List[Tuple[Dispatch, DispatchStatus, FobTotals]]:
    """Mark every dispatch completed with its FOB totals.

    If one update fails, the dispatches already advanced get their
    previous status and FOB totals back before the error propagates.
    """
    fob_por_numero = {f.dispatch_number: f for f in resumen.por_despacho}
    avanzados: List[Tuple[Dispatch, DispatchStatus, FobTotals]] = []
    for d in despachos:
        fob = fob_por_numero[d.dispatch_number]
        try:
            registry.update_status(d.id, DispatchStatus.COMPLETED,
                                   FobTotals(total_fob_usd=fob.total_fob_usd, total_fob_ars=fob.total_fob_ars))
        except ExternalServiceError:
            for previo, estado, fob_previo in reversed(avanzados):
                try:
                    registry.update_status(previo.id, estado, fob_previo)
                except ExternalServiceError as exc:
                    logger.error(json.dumps({
                        "event": "neteo_despacho_compensacion_error",
                        "dispatch_id": previo.id,
                        "detalle": str(exc),
                    }))
            raise
        avanzados.append((d, d.status, FobTotals(total_fob_usd=d.total_fob_usd, total_fob_ars=d.total_fob_ars)))
    return avanzados


def _mensaje(resumen: CostSummary, productos: int) -> str:
    lineas = [f"Costos distribuidos exitosamente: {productos} productos actualizados", ""]
    lineas += [f"{k}: ${v}" for k, v in resumen.formateado().items()]
    return "\n".join(lineas)


@log_call
def netear_costos(
    session: WizardSession,
    catalog: ProductCatalogStore,
    registry: DispatchRegistry,
    leases: LeaseManager,
    store: SessionStore,
    checkpoint: Callable[[], None] | None = None,
) -> CommitSummary:
    """Run the staged commit for the session's pool.

    :param checkpoint: optional hook called right before the write phase;
        tests use it to simulate an abandon racing with the commit
    """
    estado = session.estado
    if not isinstance(estado, IngresandoCostos):
        raise ValidationError(f"No se puede netear en el paso '{estado.paso}'", paso=PASO)
    validar_tipo_de_cambio(session.costos, paso=PASO)
    if session.utilidad is None:
        raise ValidationError(
            'Debe calcular la utilidad primero usando "Calcular Utilidad (23%)"',
            paso=PASO,
        )
    despachos = estado.miembros()
    sin_id = [d.dispatch_number for d in despachos if d.id is None]
    if sin_id:
        raise ValidationError(f"El despacho no tiene un ID válido: {', '.join(sin_id)}", paso=PASO)
    leases.ensure(lease_keys(estado), session.id)

    numeros = [d.dispatch_number for d in despachos]
    logger.info(json.dumps({"event": "neteo_inicio", "sesion": session.id, "usuario": session.usuario,
                            "despachos": numeros}))
    productos = catalog.list_by_dispatch_numbers(numeros, company_id=session.company_id)
    if not productos:
        raise NotFoundError(f"No se encontraron productos para el despacho {', '.join(numeros)}", paso=PASO)

    resumen = calcular_resumen(despachos, session.costos, paso=PASO)
    lineas = distribuir(productos, resumen.total_a_distribuir, fob_informado=resumen.total_fob_usd, paso=PASO)

    if checkpoint is not None:
        checkpoint()
    if session.cancelado:
        raise CommitAborted("El neteo fue cancelado antes de escribir cambios", paso=PASO)

    previos = aplicar_precios(catalog, productos, lineas)
    try:
        completar_despachos(registry, despachos, resumen)
    except ExternalServiceError as exc:
        no_restaurados = _restaurar(catalog, previos)
        raise ExternalServiceError(
            "Error al completar los despachos; no se aplicó ningún cambio",
            paso=PASO,
            extra={"no_restaurados": no_restaurados},
        ) from exc

    resultado = CommitSummary(
        productos_actualizados=len(lineas),
        despachos_completados=numeros,
        resumen=resumen,
        mensaje=_mensaje(resumen, len(lineas)),
        lineas=lineas,
    )
    leases.release(session.id)
    completados = [d.model_copy(update={"status": DispatchStatus.COMPLETED}) for d in despachos]
    neteado = registrar_neteo(estado.model_copy(update={
        "principal": completados[0],
        "secundario": completados[1] if len(completados) > 1 else None,
    }), resultado)
    session.estado = neteado
    store.save(session)
    logger.info(json.dumps({
        "event": "neteo_exito",
        "sesion": session.id,
        "despachos": numeros,
        "productos_actualizados": len(lineas),
        "total_distribuido": formatear_monto(resumen.total_a_distribuir),
    }))
    return resultado

"""
services/costing_service.py
---------------------------

Cost pool model and margin ("utilidad") calculator.

The pool is the union of one or two dispatches plus the manually
entered cost categories and exchange rate. From it we derive::

    total_fob_local    = Σ dispatch.total_fob_usd * tipo_de_cambio
    total_costos       = Σ cost categories
    subtotal           = total_fob_local + total_costos
    utilidad           = subtotal * MARGIN_RATE
    total_a_distribuir = subtotal + utilidad

Nothing here is cached: every call recomputes from the inputs it is
given, which is what lets the commit ignore any figure calculated
earlier in the wizard.
"""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Sequence

from app.core.errors import ValidationError
from app.logging_config import logger
from app.schemas.costs import CostEntry, CostSummary, FobDespacho
from app.schemas.dispatch import Dispatch

MARGIN_RATE = Decimal("0.23")


def validar_tipo_de_cambio(entry: CostEntry, paso: str = "utilidad") -> Decimal:
    tipo_de_cambio = entry.tipo_de_cambio
    if tipo_de_cambio is None or tipo_de_cambio <= 0:
        raise ValidationError("Debe ingresar el tipo de cambio primero", paso=paso)
    return tipo_de_cambio


def calcular_resumen(despachos: Sequence[Dispatch], entry: CostEntry, *, paso: str = "utilidad") -> CostSummary:
    """Compute FOB, costs, subtotal, margin and total to distribute.

    :param despachos: the dispatches of the pool (one or two)
    :param entry: exchange rate and cost categories entered by the user
    :param paso: wizard step reported if validation fails
    :raises ValidationError: if the exchange rate is zero or missing, or if
        the dispatches report no FOB at all
    """
    tipo_de_cambio = validar_tipo_de_cambio(entry, paso)
    por_despacho = [
        FobDespacho(
            dispatch_number=d.dispatch_number,
            total_fob_usd=d.total_fob_usd,
            total_fob_ars=d.total_fob_usd * tipo_de_cambio,
        )
        for d in despachos
    ]
    total_fob_usd = sum((d.total_fob_usd for d in despachos), Decimal("0"))
    if total_fob_usd <= 0:
        raise ValidationError("El total FOB es 0, no se puede distribuir", paso=paso)
    total_fob_local = total_fob_usd * tipo_de_cambio
    total_costos = entry.costos.total()
    subtotal = total_fob_local + total_costos
    utilidad = subtotal * MARGIN_RATE
    resumen = CostSummary(
        tipo_de_cambio=tipo_de_cambio,
        total_fob_usd=total_fob_usd,
        total_fob_local=total_fob_local,
        total_costos=total_costos,
        subtotal=subtotal,
        utilidad=utilidad,
        total_a_distribuir=subtotal + utilidad,
        por_despacho=por_despacho,
    )
    logger.info(json.dumps({
        "event": "calcular_utilidad",
        "despachos": [d.dispatch_number for d in despachos],
        "total_fob_usd": str(total_fob_usd),
        "total_fob_local": str(total_fob_local),
        "total_costos": str(total_costos),
        "utilidad": str(utilidad),
    }))
    return resumen

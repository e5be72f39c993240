"""
services/allocation_service.py
------------------------------

Proportional allocator.

Each product line receives a share of the pool's total to distribute
equal to its share of the pool's foreign-currency FOB::

    proportion      = (unit_price_usd * quantity) / Σ pool FOB (USD)
    share_local     = total_a_distribuir * proportion
    unit_price      = share_local / quantity
    extended_value  = unit_price * quantity

``proportion`` is USD over USD, a pure number, so applying it to a
local-currency total is correct. Do not convert the FOB values to local
currency before taking the ratio: with a single exchange rate the
result is identical, and with per-dispatch rates it would be wrong.

The denominator is the sum of the product lines themselves, which
makes the shares add up to the total to distribute. The total itself was
computed from the FOB the ingestion service reported, so when the caller
passes that figure the two must agree within ``FOB_TOLERANCE``.
"""

from __future__ import annotations

import json
from decimal import Decimal
from typing import List, Optional, Sequence

from app.core.errors import ValidationError
from app.logging_config import logger
from app.schemas.costs import AllocationLine
from app.schemas.products import ProductLine
from app.utils.money import formatear_monto

FOB_TOLERANCE = Decimal("0.01")


def fob_del_pool(productos: Sequence[ProductLine]) -> Decimal:
    return sum((p.fob_usd for p in productos), Decimal("0"))


def validar_productos(productos: Sequence[ProductLine], paso: str = "distribucion") -> Decimal:
    """Reject zero-quantity lines and a zero pool FOB; return the pool FOB."""
    sin_cantidad = [p for p in productos if p.quantity <= 0]
    if sin_cantidad:
        nombres = ", ".join(str(p.name or p.sku or p.id) for p in sin_cantidad[:5])
        raise ValidationError(
            f"Hay {len(sin_cantidad)} producto(s) con cantidad cero: {nombres}",
            paso=paso,
            extra={"productos": [p.id for p in sin_cantidad]},
        )
    total_fob = fob_del_pool(productos)
    if total_fob <= 0:
        raise ValidationError("El total FOB es 0, no se puede distribuir", paso=paso)
    return total_fob


def distribuir(
    productos: Sequence[ProductLine],
    total_a_distribuir: Decimal,
    *,
    fob_informado: Optional[Decimal] = None,
    paso: str = "distribucion",
) -> List[AllocationLine]:
    """Allocate ``total_a_distribuir`` across ``productos``.

    :param productos: every product line of the pool (both dispatches)
    :param total_a_distribuir: subtotal plus margin, local currency
    :param fob_informado: pool FOB reported by the ingestion service; the
        figures of the cost summary were computed from it, so the product
        lines must add up to the same amount
    :raises ValidationError: on an empty/zero-FOB pool, a zero quantity or
        a reported FOB that disagrees with the product lines
    """
    total_fob = validar_productos(productos, paso)
    if fob_informado is not None and abs(fob_informado - total_fob) > FOB_TOLERANCE:
        logger.warning(json.dumps({
            "event": "distribuir_fob_discrepancia",
            "fob_informado": str(fob_informado),
            "fob_productos": str(total_fob),
        }))
        raise ValidationError(
            f"El FOB informado del despacho (USD {formatear_monto(fob_informado)}) no coincide con el de "
            f"sus productos (USD {formatear_monto(total_fob)}); vuelva a subir el archivo",
            paso=paso,
            extra={"fob_informado": float(fob_informado), "fob_productos": float(total_fob)},
        )
    lineas: List[AllocationLine] = []
    for p in productos:
        fob = p.fob_usd
        proportion = fob / total_fob
        share = total_a_distribuir * proportion
        unit_price = share / p.quantity
        lineas.append(AllocationLine(
            product_id=p.id,
            name=p.name,
            dispatch_number=p.dispatch_number,
            quantity=p.quantity,
            fob_usd=fob,
            proportion=proportion,
            share_local=share,
            unit_price_local=unit_price,
            extended_value_local=unit_price * p.quantity,
        ))
    logger.info(json.dumps({
        "event": "distribuir_costos",
        "productos": len(lineas),
        "total_fob_usd": str(total_fob),
        "total_a_distribuir": str(total_a_distribuir),
    }))
    return lineas

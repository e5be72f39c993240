"""
schemas/costs.py
-----------------

Cost pool inputs and the figures derived from them.

Every cost category is a non-negative local-currency amount that
defaults to zero. Amounts may be sent as JSON numbers or as es-AR
formatted strings (``"1.234,56"``); either way they are rounded to the
cent through :class:`~app.utils.money.Money`.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator

from app.utils.money import Money, Monto, formatear_monto, parsear_monto

CATEGORIAS_COSTO = (
    "flete",
    "derechos",
    "estadisticas",
    "impuestos_internacionales",
    "impuesto_pais",
    "oficializacion",
    "sertear",
    "gastos_internos",
    "terminal",
    "almacenaje",
    "ivetra",
    "tap",
    "honorarios",
)


class CostCategories(BaseModel):
    flete: Monto = Decimal("0")
    derechos: Monto = Decimal("0")
    estadisticas: Monto = Decimal("0")
    impuestos_internacionales: Monto = Decimal("0")
    impuesto_pais: Monto = Decimal("0")
    oficializacion: Monto = Decimal("0")
    sertear: Monto = Decimal("0")
    gastos_internos: Monto = Decimal("0")
    terminal: Monto = Decimal("0")
    almacenaje: Monto = Decimal("0")
    ivetra: Monto = Decimal("0")
    tap: Monto = Decimal("0")
    honorarios: Monto = Decimal("0")

    @field_validator(*CATEGORIAS_COSTO, mode="before")
    @classmethod
    def a_centavos(cls, v):
        monto = Money.from_value(v).amount
        if monto < 0:
            raise ValueError("Los costos no pueden ser negativos")
        return monto

    def total(self) -> Decimal:
        return Money.total(Money.from_value(getattr(self, c)) for c in CATEGORIAS_COSTO).amount


class CostEntry(BaseModel):
    """Manually entered part of the cost pool."""

    tipo_de_cambio: Monto = Decimal("0")
    costos: CostCategories = Field(default_factory=CostCategories)

    @field_validator("tipo_de_cambio", mode="before")
    @classmethod
    def tipo_de_cambio_decimal(cls, v):
        monto = parsear_monto(v)
        if monto < 0:
            raise ValueError("El tipo de cambio no puede ser negativo")
        return monto


class FobDespacho(BaseModel):
    dispatch_number: str
    total_fob_usd: Monto
    total_fob_ars: Monto


class CostSummary(BaseModel):
    tipo_de_cambio: Monto
    total_fob_usd: Monto
    total_fob_local: Monto
    total_costos: Monto
    subtotal: Monto
    utilidad: Monto
    total_a_distribuir: Monto
    por_despacho: List[FobDespacho] = Field(default_factory=list)

    def formateado(self) -> Dict[str, str]:
        return {
            "FOB Total (USD)": formatear_monto(self.total_fob_usd),
            "Tipo de Cambio": formatear_monto(self.tipo_de_cambio),
            "FOB Total (ARS)": formatear_monto(self.total_fob_local),
            "Costos": formatear_monto(self.total_costos),
            "Subtotal": formatear_monto(self.subtotal),
            "Utilidad (23%)": formatear_monto(self.utilidad),
            "Total Distribuido": formatear_monto(self.total_a_distribuir),
        }


class AllocationLine(BaseModel):
    product_id: int | str
    name: str = ""
    dispatch_number: str
    quantity: int
    fob_usd: Monto
    proportion: Monto
    share_local: Monto
    unit_price_local: Monto
    extended_value_local: Monto


class CommitSummary(BaseModel):
    productos_actualizados: int
    despachos_completados: List[str]
    resumen: CostSummary
    mensaje: str
    lineas: Optional[List[AllocationLine]] = None


class NormalizarRequest(BaseModel):
    buffer: str = ""
    tecla: str = ""

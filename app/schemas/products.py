"""
schemas/products.py
--------------------

Product lines as stored in the catalog. A line belongs to exactly one
dispatch through ``dispatch_number``; ``quantity`` and
``unit_price_usd`` are supplied by the ingestion service while
``price`` and ``neto`` are written only by the cost commit.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional
from app.utils.money import Monto
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProductLine(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int | str
    sku: Optional[str] = None
    name: str = ""
    quantity: int = Field(0, alias="stock")
    unit_price_usd: Monto = Decimal("0")
    price: Optional[Monto] = None
    neto: Optional[Monto] = None
    dispatch_number: str
    company_id: Optional[str] = None

    @field_validator("unit_price_usd", mode="before")
    @classmethod
    def precio_fob_nulo_es_cero(cls, v):
        return Decimal("0") if v is None else v

    # a null stock becomes 0 so the allocator rejects the line by name
    @field_validator("quantity", mode="before")
    @classmethod
    def cantidad_nula_es_cero(cls, v):
        return 0 if v is None else v

    @field_validator("name", mode="before")
    @classmethod
    def nombre_nulo_es_vacio(cls, v):
        return "" if v is None else v

    @property
    def fob_usd(self) -> Decimal:
        return self.unit_price_usd * self.quantity


class PriceUpdate(BaseModel):
    """Values written back to a product line."""

    id: int | str
    price: Optional[Monto] = None
    neto: Optional[Monto] = None

    def payload(self) -> dict:
        return {
            "price": float(self.price) if self.price is not None else None,
            "neto": float(self.neto) if self.neto is not None else None,
        }

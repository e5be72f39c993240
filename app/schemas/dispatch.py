"""
schemas/dispatch.py
--------------------

Dispatches (import shipments) and the payloads used to search, create
and delete them. ``status`` follows the lifecycle
``new → pending/open → completed``; a ``new`` dispatch has no ``id``
yet because the ingestion service creates the record upstream.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import List, Optional
from app.utils.money import Monto
from pydantic import BaseModel, ConfigDict, Field, field_validator


class DispatchStatus(str, Enum):
    NEW = "new"
    PENDING = "pending"
    OPEN = "open"
    COMPLETED = "completed"


class Dispatch(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[int | str] = None
    dispatch_number: str
    description: Optional[str] = ""
    origin: str = "CHINA"
    status: DispatchStatus = DispatchStatus.NEW
    total_fob_usd: Monto = Decimal("0")
    total_fob_ars: Optional[Monto] = None
    company_id: Optional[str] = None
    created_at: Optional[str] = None

    @field_validator("total_fob_usd", mode="before")
    @classmethod
    def fob_nulo_es_cero(cls, v):
        return Decimal("0") if v is None else v


class DispatchDraft(BaseModel):
    usuario: str
    dispatch_number: str = Field(..., min_length=1)
    description: Optional[str] = ""
    origin: Optional[str] = None

    @field_validator("dispatch_number")
    @classmethod
    def numero_no_vacio(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("El número de despacho es obligatorio")
        return v.strip()


class DispatchPage(BaseModel):
    rows: List[Dispatch]
    total_count: int
    page: int
    page_size: int


class FobTotals(BaseModel):
    """FOB totals recorded on a dispatch when its costs are committed.

    ``total_fob_ars`` is null until the first commit; compensation writes
    the previous values back, null included.
    """

    total_fob_usd: Monto
    total_fob_ars: Optional[Monto] = None


class IngestionResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    dispatch_id: int | str
    total_fob_usd: Monto = Decimal("0")

    @field_validator("total_fob_usd", mode="before")
    @classmethod
    def fob_nulo_es_cero(cls, v):
        return Decimal("0") if v is None else v

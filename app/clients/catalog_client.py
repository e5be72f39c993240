"""
clients/catalog_client.py
-------------------------

Product catalog store client.

Product lines live in the ``products`` table of a PostgREST-style
store. The allocator treats this store as the source of truth for
``stock`` (quantity) and ``unit_price_usd``; it only ever writes
``price`` and ``neto`` back, and it never creates rows.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from app.clients.http_client import HTTPClient, ensure_ok
from app.core.auth import build_catalog_headers, get_catalog_url
from app.core.config import get_settings
from app.core.errors import ExternalServiceError
from app.logging_config import logger
from app.schemas.products import PriceUpdate, ProductLine
from app.utils.pagination import paginate, parse_content_range


def _in_filter(values: Sequence[str]) -> str:
    quoted = ",".join(f'"{v}"' for v in values)
    return f"in.({quoted})"


class ProductCatalogStore:
    def __init__(self, http_client: HTTPClient) -> None:
        self.http = http_client
        self.url = get_catalog_url("products")

    def list_by_dispatch_numbers(self, numbers: Sequence[str], company_id: Optional[str] = None) -> List[ProductLine]:
        """Return every product line of the given dispatches.

        When ``company_id`` is given only that company's lines are
        returned. An empty list is a valid answer; callers decide whether
        that is an error. A partial list never is: the store may cap the
        rows it returns per request below ``APP_CATALOG_PAGE_SIZE``, so the
        offset advances by the rows actually received until an empty page,
        and the result is checked against the exact count the store
        reports.

        :raises ExternalServiceError: if fewer rows than the reported total
            were fetched, or a row cannot be read as a product line
        """
        if not numbers:
            return []
        page_size = get_settings().catalog_page_size
        params: Dict[str, Any] = {
            "select": "*",
            "dispatch_number": _in_filter(numbers),
            "order": "id.asc",
            "limit": page_size,
        }
        if company_id:
            params["company_id"] = f"eq.{company_id}"
        total_informado: Optional[int] = None

        def fetch(offset: int):
            nonlocal total_informado
            resp = self.http.request("GET", self.url, headers=build_catalog_headers(prefer="count=exact"),
                                     params={**params, "offset": offset})
            ensure_ok(resp, paso="productos", mensaje="No se pudieron obtener los productos del despacho")
            if offset == 0:
                total_informado = parse_content_range(resp.headers.get("content-range"))
            return offset, resp.json()

        def extract(page):
            offset, rows = page
            return rows, offset + len(rows)

        rows = paginate(fetch, extract, initial_token=0)
        if total_informado is not None and len(rows) != total_informado:
            logger.error(json.dumps({
                "event": "productos_incompletos",
                "dispatch_numbers": list(numbers),
                "obtenidos": len(rows),
                "total": total_informado,
            }))
            raise ExternalServiceError(
                f"Se obtuvieron {len(rows)} de {total_informado} productos del despacho",
                paso="productos",
                extra={"obtenidos": len(rows), "total": total_informado},
            )
        try:
            productos = [ProductLine.model_validate(r) for r in rows]
        except PydanticValidationError as exc:
            raise ExternalServiceError(
                "El catálogo devolvió un producto con datos inválidos",
                paso="productos",
                extra={"errores": exc.error_count()},
            ) from exc
        if not productos and company_id:
            self._diagnosticar_sin_productos(numbers, company_id)
        return productos

    def _diagnosticar_sin_productos(self, numbers: Sequence[str], company_id: str) -> None:
        resp = self.http.request("GET", self.url, headers=build_catalog_headers(),
                                 params={"select": "id,company_id", "dispatch_number": _in_filter(numbers), "limit": 50})
        if resp.status_code != 200:
            return
        otras = sorted({str(r.get("company_id")) for r in resp.json()})
        if otras:
            logger.warning(json.dumps({
                "event": "productos_otra_compania",
                "dispatch_numbers": list(numbers),
                "company_id": company_id,
                "companias_encontradas": otras,
            }))

    def update_price(self, update: PriceUpdate) -> None:
        resp = self.http.request(
            "PATCH",
            self.url,
            headers=build_catalog_headers(prefer="return=representation"),
            params={"id": f"eq.{update.id}"},
            json=update.payload(),
        )
        ensure_ok(resp, paso="actualizar_producto", mensaje=f"Error al actualizar el producto {update.id}")
        if not resp.json():
            raise ExternalServiceError(f"El producto {update.id} no existe en el catálogo", paso="actualizar_producto")

    def delete_by_dispatch(self, dispatch_number: str) -> int:
        """Delete every product line of a dispatch; return how many were removed."""
        resp = self.http.request(
            "DELETE",
            self.url,
            headers=build_catalog_headers(prefer="return=representation"),
            params={"dispatch_number": f"eq.{dispatch_number}"},
        )
        ensure_ok(resp, paso="eliminar_productos", mensaje="No se pudieron eliminar los productos del despacho")
        return len(resp.json() or [])

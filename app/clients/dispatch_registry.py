"""
clients/dispatch_registry.py
----------------------------

Dispatch registry client (``dispatches`` table) plus the lookup of a
user's company in ``profiles``.

Search results are paged by row range and ordered newest first; the
total number of matches comes back in the ``Content-Range`` header
when ``Prefer: count=exact`` is sent.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from app.clients.http_client import HTTPClient, ensure_ok
from app.core.auth import build_catalog_headers, get_catalog_url
from app.core.errors import ExternalServiceError, NotFoundError
from app.schemas.dispatch import Dispatch, DispatchPage, DispatchStatus, FobTotals
from app.utils.pagination import page_bounds, parse_content_range


class DispatchRegistry:
    def __init__(self, http_client: HTTPClient) -> None:
        self.http = http_client
        self.url = get_catalog_url("dispatches")
        self.profiles_url = get_catalog_url("profiles")

    def search(self, substring: str, page: int, page_size: int, company_id: Optional[str] = None) -> DispatchPage:
        first, last = page_bounds(page, page_size)
        params: Dict[str, Any] = {
            "select": "*",
            "order": "created_at.desc",
            "offset": first,
            "limit": last - first + 1,
        }
        if substring:
            params["dispatch_number"] = f"ilike.*{substring}*"
        if company_id:
            params["company_id"] = f"eq.{company_id}"
        resp = self.http.request("GET", self.url, headers=build_catalog_headers(prefer="count=exact"), params=params)
        ensure_ok(resp, paso="buscar_despachos", mensaje="No se pudieron obtener los despachos")
        rows = [Dispatch.model_validate(r) for r in resp.json()]
        total = parse_content_range(resp.headers.get("content-range"))
        return DispatchPage(
            rows=rows,
            total_count=total if total is not None else first + len(rows),
            page=page,
            page_size=page_size,
        )

    def get(self, dispatch_id: int | str) -> Dispatch:
        resp = self.http.request("GET", self.url, headers=build_catalog_headers(),
                                 params={"select": "*", "id": f"eq.{dispatch_id}"})
        ensure_ok(resp, paso="despacho", mensaje="No se pudo obtener el despacho")
        rows = resp.json()
        if not rows:
            raise NotFoundError(f"El despacho {dispatch_id} no existe", paso="despacho")
        return Dispatch.model_validate(rows[0])

    def create(self, draft: Dispatch) -> Dispatch:
        payload = draft.model_dump(mode="json", exclude={"id", "total_fob_ars", "created_at"})
        resp = self.http.request("POST", self.url, headers=build_catalog_headers(prefer="return=representation"),
                                 json=payload)
        ensure_ok(resp, paso="crear_despacho", mensaje="No se pudo crear el despacho")
        rows = resp.json()
        if not rows:
            raise ExternalServiceError("El registro no devolvió el despacho creado", paso="crear_despacho")
        return Dispatch.model_validate(rows[0])

    def update_status(self, dispatch_id: int | str, status: DispatchStatus, fob: Optional[FobTotals] = None) -> None:
        payload: Dict[str, Any] = {"status": status.value}
        if fob is not None:
            payload.update(fob.model_dump(mode="json"))
        resp = self.http.request("PATCH", self.url, headers=build_catalog_headers(prefer="return=representation"),
                                 params={"id": f"eq.{dispatch_id}"}, json=payload)
        ensure_ok(resp, paso="actualizar_despacho", mensaje=f"Error al actualizar el despacho {dispatch_id}")
        if not resp.json():
            raise ExternalServiceError(f"El despacho {dispatch_id} no existe en el registro", paso="actualizar_despacho")

    def delete(self, dispatch_id: int | str) -> None:
        resp = self.http.request("DELETE", self.url, headers=build_catalog_headers(),
                                 params={"id": f"eq.{dispatch_id}"})
        ensure_ok(resp, paso="eliminar_despacho", mensaje="No se pudo eliminar el despacho")

    def company_for_user(self, usuario: str) -> Optional[str]:
        """Return the company a user belongs to, or ``None`` if unknown."""
        resp = self.http.request("GET", self.profiles_url, headers=build_catalog_headers(),
                                 params={"select": "company_id", "username": f"eq.{usuario}", "limit": 1})
        if resp.status_code == 404:
            return None
        ensure_ok(resp, paso="compania", mensaje="No se pudo consultar la compañía del usuario")
        rows = resp.json()
        if not rows or not rows[0].get("company_id"):
            return None
        return str(rows[0]["company_id"])

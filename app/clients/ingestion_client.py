"""
clients/ingestion_client.py
---------------------------

Document ingestion webhook client.

The webhook receives a dispatch spreadsheet together with the dispatch
metadata, writes the product lines straight into the catalog and
answers with ``{"dispatch_id": ..., "total_fob_usd": ...}``. How the
spreadsheet is read is entirely up to the webhook; this client only
forwards the file and validates the answer.
"""

from __future__ import annotations

import json

from pydantic import ValidationError as PydanticValidationError

from app.clients.http_client import HTTPClient, ensure_ok
from app.core.config import get_settings
from app.core.errors import ExternalServiceError
from app.logging_config import logger
from app.schemas.dispatch import Dispatch, IngestionResult


class DocumentIngestionService:
    def __init__(self, http_client: HTTPClient) -> None:
        self.http = http_client
        settings = get_settings()
        self.url = settings.ingestion_url
        self.timeout = settings.ingestion_timeout

    def upload(
        self,
        dispatch: Dispatch,
        *,
        filename: str,
        content: bytes,
        content_type: str | None,
        rol: str,
        tamano_pool: int,
    ) -> IngestionResult:
        data = {
            "dispatchNumber": dispatch.dispatch_number,
            "description": dispatch.description or "",
            "companyId": dispatch.company_id or "",
            "origin": dispatch.origin,
            "role": rol,
            "poolSize": str(tamano_pool),
        }
        files = {"file": (filename, content, content_type or "application/octet-stream")}
        logger.info(json.dumps({
            "event": "ingesta_envio",
            "dispatch_number": dispatch.dispatch_number,
            "rol": rol,
            "archivo": filename,
            "bytes": len(content),
        }))
        resp = self.http.request("POST", self.url, data=data, files=files, timeout=self.timeout)
        ensure_ok(resp, paso="subir_documento", mensaje=f"Error al subir el archivo del despacho {dispatch.dispatch_number}")
        try:
            result = IngestionResult.model_validate(resp.json())
        except (ValueError, PydanticValidationError) as exc:
            raise ExternalServiceError(
                "El servicio de ingesta no devolvió dispatch_id",
                paso="subir_documento",
            ) from exc
        logger.info(json.dumps({
            "event": "ingesta_respuesta",
            "dispatch_number": dispatch.dispatch_number,
            "dispatch_id": result.dispatch_id,
            "total_fob_usd": str(result.total_fob_usd),
        }))
        return result

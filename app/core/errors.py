"""
core/errors.py
---------------

Error taxonomy for the cost allocation workflow.

Every error is an ``HTTPException`` so services can raise it directly
and FastAPI renders it without extra handlers. The ``detail`` payload
always names the step that failed (``paso``) together with a human
readable message, which is what the wizard shows as a blocking
message.
"""

from __future__ import annotations

from typing import Any, Dict, Optional
from fastapi import HTTPException


class NeteoError(HTTPException):
    """Base class of all workflow errors."""

    status_code: int = 500

    def __init__(self, mensaje: str, *, paso: str = "neteo", extra: Optional[Dict[str, Any]] = None) -> None:
        detail: Dict[str, Any] = {"paso": paso, "mensaje": mensaje}
        if extra:
            detail.update(extra)
        super().__init__(status_code=self.status_code, detail=detail)
        self.mensaje = mensaje
        self.paso = paso

    def __str__(self) -> str:
        return f"[{self.paso}] {self.mensaje}"


class ValidationError(NeteoError):
    """Input rejected before any network call is attempted."""

    status_code = 422


class TransitionError(ValidationError):
    """The wizard cannot perform the requested move from its current state."""


class NotFoundError(NeteoError):
    status_code = 404


class ExternalServiceError(NeteoError):
    """Ingestion, catalog or registry call failed."""

    status_code = 502


class ConsistencyError(NeteoError):
    """A dispatch could not be tied to a resolvable company."""

    status_code = 409


class LeaseConflictError(NeteoError):
    """Another session holds the lease of one of the pooled dispatches."""

    status_code = 409

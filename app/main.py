# main.py
from __future__ import annotations

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse

# Import logging utilities early so that the logger configuration is
# applied before any other modules emit log messages.
from app.logging_config import logger
import json
import time

from app.clients.http_client import HTTPClient
from app.routes.dispatch import router as dispatch_router
from app.routes.neteo import router as neteo_router
from app.services.lease_service import leases
from app.session import sessions


@asynccontextmanager
async def lifespan(app: FastAPI):
    # cliente HTTP compartido, leases y sesiones del wizard
    app.state.http_client = HTTPClient()
    app.state.leases = leases
    app.state.sessions = sessions
    try:
        yield
    finally:
        app.state.http_client.close()


def create_app() -> FastAPI:
    app = FastAPI(title="Neteo de Costos", default_response_class=ORJSONResponse, lifespan=lifespan)

    app.include_router(dispatch_router)
    app.include_router(neteo_router)

    # -----------------------------------------------------------------
    # Middleware de logging de requests
    # -----------------------------------------------------------------
    # Registra camino, método, código de respuesta y tiempo de procesado
    # de cada solicitud como un evento JSON.
    @app.middleware("http")  # type: ignore[misc]
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start_time) * 1000
        try:
            logger.info(json.dumps({
                "event": "http_request",
                "path": request.url.path,
                "method": request.method,
                "status": response.status_code,
                "duration_ms": round(duration_ms, 2),
            }))
        except Exception:
            logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({round(duration_ms,2)} ms)")
        return response

    return app


app = create_app()

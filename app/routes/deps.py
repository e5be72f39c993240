"""
routes/deps.py
---------------

FastAPI dependencies shared by the route modules. The HTTP client, the
lease manager and the session store are created once in the
application lifespan and read back from ``app.state``; the collaborator
clients are thin wrappers built per request around the shared HTTP
client.
"""

from __future__ import annotations

from fastapi import Depends, Request

from app.clients.catalog_client import ProductCatalogStore
from app.clients.dispatch_registry import DispatchRegistry
from app.clients.http_client import HTTPClient
from app.clients.ingestion_client import DocumentIngestionService
from app.services.lease_service import LeaseManager
from app.session import SessionStore


def get_http_client(request: Request) -> HTTPClient:
    return request.app.state.http_client


def get_leases(request: Request) -> LeaseManager:
    return request.app.state.leases


def get_sessions(request: Request) -> SessionStore:
    return request.app.state.sessions


def get_catalog(http_client: HTTPClient = Depends(get_http_client)) -> ProductCatalogStore:
    return ProductCatalogStore(http_client)


def get_registry(http_client: HTTPClient = Depends(get_http_client)) -> DispatchRegistry:
    return DispatchRegistry(http_client)


def get_ingestion(http_client: HTTPClient = Depends(get_http_client)) -> DocumentIngestionService:
    return DocumentIngestionService(http_client)

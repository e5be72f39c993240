from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.routes.deps import get_catalog, get_ingestion, get_leases, get_registry, get_sessions
from app.schemas.dispatch import DispatchStatus


@pytest.fixture
def client(registry, catalog, ingestion, leases, store):
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_catalog] = lambda: catalog
    app.dependency_overrides[get_ingestion] = lambda: ingestion
    app.dependency_overrides[get_leases] = lambda: leases
    app.dependency_overrides[get_sessions] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_full_single_dispatch_flow(client, registry, catalog, ingestion):
    d1 = registry.add("IMP-001")
    ingestion.fob = {"IMP-001": "1500"}
    catalog.add(1, "IMP-001", 10, "100")
    catalog.add(2, "IMP-001", 50, "10")

    r = client.post("/neteo/sesiones", json={"usuario": "ana"})
    assert r.status_code == 201
    sid = r.json()["id"]
    assert r.json()["estado"]["paso"] == "seleccionando_principal"

    r = client.post(f"/neteo/sesiones/{sid}/principal", json={"dispatch_id": d1.id})
    assert r.json()["estado"]["paso"] == "grupo_confirmado"
    r = client.post(f"/neteo/sesiones/{sid}/confirmar")
    assert r.json()["estado"]["paso"] == "subiendo"

    r = client.post(f"/neteo/sesiones/{sid}/documentos", data={"rol": "primary"},
                    files={"file": ("productos.xlsx", b"contenido", "application/octet-stream")})
    assert r.status_code == 200
    assert r.json()["estado"]["paso"] == "ingresando_costos"

    r = client.put(f"/neteo/sesiones/{sid}/costos",
                   json={"tipo_de_cambio": "1.000,00", "costos": {"flete": 300000}})
    assert r.status_code == 200

    r = client.post(f"/neteo/sesiones/{sid}/netear")
    assert r.status_code == 422
    assert r.json()["detail"]["paso"] == "neteo"

    r = client.post(f"/neteo/sesiones/{sid}/utilidad")
    assert r.json()["formateado"]["Total Distribuido"] == "2.214.000,00"

    r = client.post(f"/neteo/sesiones/{sid}/netear")
    assert r.status_code == 200
    body = r.json()
    assert body["productos_actualizados"] == 2
    assert body["resumen"]["utilidad"] == 414000.0
    assert registry.get(d1.id).status == DispatchStatus.COMPLETED
    assert client.get(f"/neteo/sesiones/{sid}").json()["estado"]["paso"] == "neteado"


def test_upload_in_wrong_step_is_422(client, registry):
    sid = client.post("/neteo/sesiones", json={"usuario": "ana"}).json()["id"]
    r = client.post(f"/neteo/sesiones/{sid}/documentos", data={"rol": "primary"},
                    files={"file": ("p.xlsx", b"x", "application/octet-stream")})
    assert r.status_code == 422
    assert r.json()["detail"]["paso"] == "seleccionando_principal"


def test_unknown_session_is_404(client):
    assert client.get("/neteo/sesiones/nope").status_code == 404


def test_abandon_session(client, registry, leases):
    d1 = registry.add("IMP-002", status=DispatchStatus.PENDING, fob="10")
    sid = client.post("/neteo/sesiones", json={"usuario": "ana"}).json()["id"]
    client.post(f"/neteo/sesiones/{sid}/principal", json={"dispatch_id": d1.id})
    assert leases.holder("IMP-002") == sid
    assert client.delete(f"/neteo/sesiones/{sid}").status_code == 200
    assert leases.holder("IMP-002") is None


def test_normalizar_endpoint(client):
    r = client.post("/neteo/normalizar", json={"buffer": "12345", "tecla": "6"})
    assert r.json() == {"buffer": "123456", "display": "1.234,56", "valor": 1234.56}


def test_search_dispatches(client, registry):
    registry.add("IMP-001")
    registry.add("EXP-001")
    r = client.get("/despachos", params={"usuario": "ana", "search": "imp", "page_size": 20})
    assert r.status_code == 200
    assert [d["dispatch_number"] for d in r.json()["rows"]] == ["IMP-001"]


def test_search_rejects_unknown_page_size(client):
    r = client.get("/despachos", params={"usuario": "ana", "page_size": 7})
    assert r.status_code == 422


def test_create_dispatch_defaults_origin(client, registry):
    r = client.post("/despachos", json={"usuario": "ana", "dispatch_number": " IMP-010 "})
    assert r.status_code == 201
    assert r.json()["dispatch_number"] == "IMP-010"
    assert r.json()["status"] == "new"


def test_create_dispatch_without_company_is_409(client, registry):
    registry.company_id = None
    r = client.post("/despachos", json={"usuario": "nadie", "dispatch_number": "IMP-011"})
    assert r.status_code == 409


def test_delete_requires_confirmation(client, registry, catalog):
    d = registry.add("IMP-003")
    catalog.add(1, "IMP-003", 1, "1")
    r = client.delete(f"/despachos/{d.id}", params={"usuario": "ana"})
    assert r.status_code == 422
    r = client.delete(f"/despachos/{d.id}", params={"usuario": "ana", "confirmar": True})
    assert r.status_code == 200
    assert r.json()["productos_eliminados"] == 1
    assert str(d.id) not in registry.dispatches


def test_delete_of_leased_dispatch_is_409(client, registry, leases):
    d = registry.add("IMP-004")
    leases.acquire(["IMP-004"], "otra")
    r = client.delete(f"/despachos/{d.id}", params={"usuario": "ana", "confirmar": True})
    assert r.status_code == 409

from __future__ import annotations

from decimal import Decimal

import pytest

from app.core.errors import ExternalServiceError, LeaseConflictError, NotFoundError, ValidationError
from app.schemas.costs import CostEntry, CostSummary
from app.schemas.dispatch import DispatchStatus
from app.schemas.wizard import IngresandoCostos, Neteado
from app.services import wizard_service as ws
from app.services.commit_service import CommitAborted, netear_costos


@pytest.fixture
def pool(registry, catalog, ingestion, leases, store):
    """Session with two uploaded dispatches, costs entered and margin calculated."""
    d1 = registry.add("D1")
    d2 = registry.add("D2")
    ingestion.fob = {"D1": "1000", "D2": "500"}
    catalog.add(1, "D1", 10, "10")
    catalog.add(2, "D1", 30, "30")
    catalog.add(3, "D2", 7, "50")
    catalog.add(4, "D2", 3, "50")
    session = ws.iniciar_sesion("ana", registry, store)
    ws.elegir_principal(session, d1.id, registry, leases, store)
    ws.agregar_secundario(session, leases, store)
    ws.elegir_secundario(session, d2.id, registry, leases, store)
    ws.confirmar(session, leases, store)
    for rol in ("primary", "secondary"):
        ws.subir_documento(session, rol, filename="p.xlsx", content=b"x", content_type=None,
                           ingestion=ingestion, leases=leases, store=store)
    ws.ingresar_costos(session, CostEntry(tipo_de_cambio=1000, costos={"flete": 300000}), store)
    ws.calcular_utilidad(session, store)
    return session


def _estados(registry):
    return {d.dispatch_number: d.status for d in registry.dispatches.values()}


def _run(session, catalog, registry, leases, store, **kwargs):
    return netear_costos(session, catalog, registry, leases, store, **kwargs)


def test_commit_writes_prices_and_completes_dispatches(pool, catalog, registry, leases, store):
    resultado = _run(pool, catalog, registry, leases, store)
    assert resultado.productos_actualizados == 4
    assert resultado.despachos_completados == ["D1", "D2"]
    assert resultado.resumen.total_a_distribuir == Decimal("2214000")
    assert resultado.mensaje.startswith("Costos distribuidos exitosamente: 4 productos actualizados")
    assert round(catalog.products["1"].price, 2) == Decimal("14760.00")
    assert round(catalog.products["1"].neto, 2) == Decimal("147600.00")
    total_neto = sum(p.neto for p in catalog.products.values())
    assert abs(total_neto - Decimal("2214000")) < Decimal("0.000001")

    assert _estados(registry) == {"D1": DispatchStatus.COMPLETED, "D2": DispatchStatus.COMPLETED}
    d1 = next(d for d in registry.dispatches.values() if d.dispatch_number == "D1")
    assert d1.total_fob_ars == Decimal("1000000")
    assert isinstance(pool.estado, Neteado)
    assert leases.holder("D1") is None
    assert leases.holder("D2") is None


def test_commit_requires_margin_step(pool, catalog, registry, leases, store):
    pool.utilidad = None
    with pytest.raises(ValidationError) as exc:
        _run(pool, catalog, registry, leases, store)
    assert "Calcular Utilidad" in exc.value.mensaje
    assert catalog.writes == []


def test_commit_requires_exchange_rate(pool, catalog, registry, leases, store):
    pool.costos = CostEntry()
    with pytest.raises(ValidationError):
        _run(pool, catalog, registry, leases, store)
    assert catalog.writes == []


def test_commit_recomputes_instead_of_trusting_stale_margin(pool, catalog, registry, leases, store):
    ws.ingresar_costos(pool, CostEntry(tipo_de_cambio=2000, costos={"flete": 300000}), store)
    resultado = _run(pool, catalog, registry, leases, store)
    # (1500 * 2000 + 300000) * 1.23
    assert resultado.resumen.total_a_distribuir == Decimal("4059000")


def test_failed_product_write_leaves_nothing_applied(pool, catalog, registry, leases, store):
    catalog.fail_ids = {"3"}
    antes = _estados(registry)
    with pytest.raises(ExternalServiceError) as exc:
        _run(pool, catalog, registry, leases, store)
    assert exc.value.detail["product_id"] == 3
    assert exc.value.detail["no_restaurados"] == []
    assert all(p.price is None and p.neto is None for p in catalog.products.values())
    assert _estados(registry) == antes
    assert registry.status_calls == []
    # still leased and still at cost entry, so the user can retry
    assert isinstance(pool.estado, IngresandoCostos)
    assert leases.holder("D1") == pool.id


def test_failed_status_update_reverts_dispatches_and_prices(pool, catalog, registry, leases, store):
    d2 = next(d for d in registry.dispatches.values() if d.dispatch_number == "D2")
    registry.fail_status_ids = {str(d2.id)}
    with pytest.raises(ExternalServiceError):
        _run(pool, catalog, registry, leases, store)
    assert _estados(registry) == {"D1": DispatchStatus.PENDING, "D2": DispatchStatus.PENDING}
    # D1 was completed with its ARS total before D2 failed; both figures go back
    d1 = next(d for d in registry.dispatches.values() if d.dispatch_number == "D1")
    assert d1.total_fob_ars is None
    assert d1.total_fob_usd == Decimal("1000")
    assert all(p.price is None and p.neto is None for p in catalog.products.values())
    assert isinstance(pool.estado, IngresandoCostos)


def test_abandon_before_write_phase_aborts(pool, catalog, registry, leases, store):
    def abandonar():
        ws.abandonar(pool, leases, store)

    with pytest.raises(CommitAborted):
        _run(pool, catalog, registry, leases, store, checkpoint=abandonar)
    assert catalog.writes == []
    assert registry.status_calls == []


def test_commit_without_lease_is_rejected(pool, catalog, registry, leases, store):
    leases.release(pool.id)
    leases.acquire(["D2"], "otra-sesion")
    with pytest.raises(LeaseConflictError):
        _run(pool, catalog, registry, leases, store)
    assert catalog.writes == []


def test_commit_without_products_is_not_found(pool, catalog, registry, leases, store):
    catalog.products.clear()
    with pytest.raises(NotFoundError):
        _run(pool, catalog, registry, leases, store)
    assert registry.status_calls == []


def _reanudado(registry, catalog, leases, store, fob_registro):
    d1 = registry.add("D1", status=DispatchStatus.PENDING, fob=fob_registro)
    catalog.add(1, "D1", 10, "100")
    session = ws.iniciar_sesion("ana", registry, store)
    ws.elegir_principal(session, d1.id, registry, leases, store)
    ws.ingresar_costos(session, CostEntry(tipo_de_cambio=1000, costos={"flete": 1000}), store)
    return session


def test_resumed_dispatch_without_fob_cannot_be_costed(registry, catalog, leases, store):
    session = _reanudado(registry, catalog, leases, store, fob_registro="0")
    with pytest.raises(ValidationError):
        ws.calcular_utilidad(session, store)
    # even with a margin left over from before, the commit recomputes and stops
    session.utilidad = CostSummary(tipo_de_cambio=1000, total_fob_usd=0, total_fob_local=0, total_costos=1000,
                                   subtotal=1000, utilidad=230, total_a_distribuir=1230)
    with pytest.raises(ValidationError):
        _run(session, catalog, registry, leases, store)
    assert catalog.writes == []
    assert registry.status_calls == []


def test_reported_fob_disagreeing_with_products_blocks_commit(registry, catalog, leases, store):
    session = _reanudado(registry, catalog, leases, store, fob_registro="400")
    ws.calcular_utilidad(session, store)
    with pytest.raises(ValidationError) as exc:
        _run(session, catalog, registry, leases, store)
    assert exc.value.detail["paso"] == "neteo"
    assert exc.value.detail["fob_informado"] == 400.0
    assert exc.value.detail["fob_productos"] == 1000.0
    assert catalog.writes == []
    assert registry.status_calls == []
    assert catalog.products["1"].price is None
    assert _estados(registry) == {"D1": DispatchStatus.PENDING}
    assert leases.holder("D1") == session.id
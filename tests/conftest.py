from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Optional, Sequence

import pytest

from app.core.context import user_context
from app.core.errors import ExternalServiceError, NotFoundError
from app.schemas.dispatch import Dispatch, DispatchPage, DispatchStatus, FobTotals, IngestionResult
from app.schemas.products import PriceUpdate, ProductLine
from app.services.lease_service import LeaseManager
from app.session import SessionStore


class FakeRegistry:
    """In-memory dispatch registry with failure injection."""

    def __init__(self, company_id: Optional[str] = "comp-1") -> None:
        self.dispatches: Dict[str, Dispatch] = {}
        self.company_id = company_id
        self.fail_status_ids: set = set()
        self.status_calls: List[tuple] = []
        self._next_id = 100

    def add(self, numero: str, status: DispatchStatus = DispatchStatus.NEW, fob="0", id=None) -> Dispatch:
        if id is None:
            self._next_id += 1
            id = self._next_id
        d = Dispatch(id=id, dispatch_number=numero, status=status, total_fob_usd=Decimal(str(fob)),
                     company_id=self.company_id)
        self.dispatches[str(id)] = d
        return d

    def search(self, substring: str, page: int, page_size: int, company_id=None) -> DispatchPage:
        rows = [d for d in self.dispatches.values() if substring.lower() in d.dispatch_number.lower()]
        first = page * page_size
        return DispatchPage(rows=rows[first:first + page_size], total_count=len(rows), page=page, page_size=page_size)

    def get(self, dispatch_id) -> Dispatch:
        try:
            return self.dispatches[str(dispatch_id)]
        except KeyError:
            raise NotFoundError(f"El despacho {dispatch_id} no existe", paso="despacho")

    def create(self, draft: Dispatch) -> Dispatch:
        return self.add(draft.dispatch_number, draft.status)

    def update_status(self, dispatch_id, status: DispatchStatus, fob: Optional[FobTotals] = None) -> None:
        self.status_calls.append((str(dispatch_id), status))
        if str(dispatch_id) in self.fail_status_ids and status == DispatchStatus.COMPLETED:
            raise ExternalServiceError("registro caído", paso="actualizar_despacho")
        update = {"status": status}
        if fob is not None:
            update.update(fob.model_dump())
        self.dispatches[str(dispatch_id)] = self.dispatches[str(dispatch_id)].model_copy(update=update)

    def delete(self, dispatch_id) -> None:
        self.dispatches.pop(str(dispatch_id), None)

    def company_for_user(self, usuario: str) -> Optional[str]:
        return self.company_id


class FakeCatalog:
    """In-memory product catalog with failure injection."""

    def __init__(self) -> None:
        self.products: Dict[str, ProductLine] = {}
        self.fail_ids: set = set()
        self.writes: List[PriceUpdate] = []

    def add(self, id, numero: str, quantity: int, unit_usd, name: str = "") -> ProductLine:
        p = ProductLine(id=id, name=name or f"prod-{id}", quantity=quantity,
                        unit_price_usd=Decimal(str(unit_usd)), dispatch_number=numero, company_id="comp-1")
        self.products[str(id)] = p
        return p

    def list_by_dispatch_numbers(self, numbers: Sequence[str], company_id=None) -> List[ProductLine]:
        return [p.model_copy() for p in self.products.values() if p.dispatch_number in numbers]

    def update_price(self, update: PriceUpdate) -> None:
        if str(update.id) in self.fail_ids:
            raise ExternalServiceError(f"Error al actualizar el producto {update.id}", paso="actualizar_producto")
        self.writes.append(update)
        actual = self.products[str(update.id)]
        self.products[str(update.id)] = actual.model_copy(update={"price": update.price, "neto": update.neto})

    def delete_by_dispatch(self, dispatch_number: str) -> int:
        ids = [k for k, p in self.products.items() if p.dispatch_number == dispatch_number]
        for k in ids:
            del self.products[k]
        return len(ids)


class FakeIngestion:
    """Ingestion webhook stand-in: acknowledges with the registry id and FOB."""

    def __init__(self, registry: FakeRegistry, fob: Optional[Dict[str, str]] = None) -> None:
        self.registry = registry
        self.fob = fob or {}
        self.calls: List[dict] = []

    def upload(self, dispatch: Dispatch, *, filename, content, content_type, rol, tamano_pool) -> IngestionResult:
        self.calls.append({"dispatch_number": dispatch.dispatch_number, "rol": rol, "tamano_pool": tamano_pool})
        fob = Decimal(self.fob.get(dispatch.dispatch_number, "0"))
        d = next(d for d in self.registry.dispatches.values() if d.dispatch_number == dispatch.dispatch_number)
        self.registry.dispatches[str(d.id)] = d.model_copy(update={"status": DispatchStatus.PENDING,
                                                                   "total_fob_usd": fob})
        return IngestionResult(dispatch_id=d.id, total_fob_usd=fob)


@pytest.fixture(autouse=True)
def _clean_user_context():
    user_context.clear()
    yield
    user_context.clear()


@pytest.fixture
def registry():
    return FakeRegistry()


@pytest.fixture
def catalog():
    return FakeCatalog()


@pytest.fixture
def ingestion(registry):
    return FakeIngestion(registry)


@pytest.fixture
def leases():
    return LeaseManager(ttl=60)


@pytest.fixture
def store():
    return SessionStore()

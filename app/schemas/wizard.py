"""
schemas/wizard.py
------------------

States of the cost allocation wizard.

The wizard is a tagged union discriminated by ``paso``; each state
carries exactly the data that is meaningful at that point, so there is
no combination of flags to get wrong::

    seleccionando_principal → grupo_confirmado
        → (seleccionando_secundario → grupo_confirmado)
        → subiendo → ingresando_costos → neteado

Transitions live in :mod:`app.services.wizard_service`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field

from app.schemas.costs import CommitSummary, CostEntry, CostSummary
from app.schemas.dispatch import Dispatch, IngestionResult

ROL_PRINCIPAL = "primary"
ROL_SECUNDARIO = "secondary"


class _ConPool(BaseModel):
    principal: Dispatch
    secundario: Optional[Dispatch] = None

    def miembros(self) -> List[Dispatch]:
        return [self.principal] + ([self.secundario] if self.secundario else [])

    def roles(self) -> List[str]:
        return [ROL_PRINCIPAL] + ([ROL_SECUNDARIO] if self.secundario else [])


class SeleccionandoPrincipal(BaseModel):
    paso: Literal["seleccionando_principal"] = "seleccionando_principal"


class GrupoConfirmado(_ConPool):
    paso: Literal["grupo_confirmado"] = "grupo_confirmado"


class SeleccionandoSecundario(BaseModel):
    paso: Literal["seleccionando_secundario"] = "seleccionando_secundario"
    principal: Dispatch


class Subiendo(_ConPool):
    paso: Literal["subiendo"] = "subiendo"
    subidos: Dict[str, IngestionResult] = Field(default_factory=dict)

    def pendientes(self) -> List[str]:
        return [r for r in self.roles() if r not in self.subidos]


class IngresandoCostos(_ConPool):
    paso: Literal["ingresando_costos"] = "ingresando_costos"
    # resumed from the dispatch list; a former pairing is not known
    reanudado: bool = False


class Neteado(_ConPool):
    paso: Literal["neteado"] = "neteado"
    resultado: CommitSummary


WizardState = Annotated[
    Union[SeleccionandoPrincipal, GrupoConfirmado, SeleccionandoSecundario, Subiendo, IngresandoCostos, Neteado],
    Field(discriminator="paso"),
]


def ahora() -> datetime:
    return datetime.now(timezone.utc)


class WizardSession(BaseModel):
    id: str
    usuario: str
    company_id: Optional[str] = None
    estado: WizardState = Field(default_factory=SeleccionandoPrincipal)
    costos: CostEntry = Field(default_factory=CostEntry)
    utilidad: Optional[CostSummary] = None
    cancelado: bool = False
    creado_en: datetime = Field(default_factory=ahora)
    actualizado_en: datetime = Field(default_factory=ahora)


class NuevaSesionRequest(BaseModel):
    usuario: str


class SeleccionRequest(BaseModel):
    dispatch_id: int | str


# -*- coding: utf-8 -*-

# picade/routes/catalogo.py
from typing import Literal

from fastapi import APIRouter, Depends

from picade.core.deps import get_current_session, get_procedimientos
from picade.services.auth_service import ContextoSesion
from picade.services.catalogos import listar_hijos
from picade.services.procedimientos import ProcedimientosAlmacenados

router = APIRouter(prefix="/api/catalogos", tags=["Catálogo"])


@router.get("/{nivel}/{padre_id}")
def hijos_de(
    nivel: Literal["estados", "municipios", "subdirecciones", "gerencias"],
    padre_id: int,
    _user: ContextoSesion = Depends(get_current_session),
    sp: ProcedimientosAlmacenados = Depends(get_procedimientos),
):
    return listar_hijos(sp, nivel, padre_id)

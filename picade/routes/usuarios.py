# picade/routes/usuarios.py
from typing import Optional

from fastapi import APIRouter, Depends, Query

from picade.core.deps import get_gestor, require_admin
from picade.models.roles import Rol
from picade.schemas.comun import MensajeOut
from picade.schemas.usuarios import EstatusIn, UsuarioAdminIn, UsuarioAdminUpdateIn
from picade.services.auth_service import ContextoSesion
from picade.services.usuarios_service import GestorUsuarios

router = APIRouter(prefix="/usuarios", tags=["Admin Users"])

_IDS_ROL = {int(r) for r in Rol}


@router.get("")
def listar_usuarios(
    q: Optional[str] = None,
    roles: list[int] = Query(default=[]),
    estatus: list[int] = Query(default=[]),
    sort: str = "rol",
    page: int = Query(default=1, ge=1),
    _admin: ContextoSesion = Depends(require_admin),
    gestor: GestorUsuarios = Depends(get_gestor),
):
    return gestor.listar(
        q=q,
        roles=[Rol(r) for r in roles if r in _IDS_ROL],
        estatus=[bool(e) for e in estatus],
        orden=sort,
        pagina=page,
    )


@router.get("/instructores")
def listar_instructores(
    historial: bool = False,
    _admin: ContextoSesion = Depends(require_admin),
    gestor: GestorUsuarios = Depends(get_gestor),
):
    return gestor.listar_instructores(historial=historial)


@router.post("", status_code=201)
def crear_usuario(
    payload: UsuarioAdminIn,
    admin: ContextoSesion = Depends(require_admin),
    gestor: GestorUsuarios = Depends(get_gestor),
):
    alta = gestor.registrar_por_admin(admin, payload)
    return {"ok": True, "alerta": "success", "detail": alta.mensaje, "usuario_id": alta.usuario_id}


@router.get("/{usuario_id}")
def ver_usuario(
    usuario_id: int,
    _admin: ContextoSesion = Depends(require_admin),
    gestor: GestorUsuarios = Depends(get_gestor),
):
    return gestor.consultar(usuario_id)


@router.put("/{usuario_id}", response_model=MensajeOut)
def editar_usuario(
    usuario_id: int,
    payload: UsuarioAdminUpdateIn,
    admin: ContextoSesion = Depends(require_admin),
    gestor: GestorUsuarios = Depends(get_gestor),
):
    return MensajeOut.desde_resultado(gestor.editar_por_admin(admin, usuario_id, payload))


@router.patch("/{usuario_id}/estatus", response_model=MensajeOut)
def cambiar_estatus(
    usuario_id: int,
    payload: EstatusIn,
    admin: ContextoSesion = Depends(require_admin),
    gestor: GestorUsuarios = Depends(get_gestor),
):
    return MensajeOut.desde_resultado(gestor.cambiar_estatus(admin, usuario_id, payload.nuevo_estatus))


@router.delete("/{usuario_id}", response_model=MensajeOut)
def eliminar_usuario(
    usuario_id: int,
    admin: ContextoSesion = Depends(require_admin),
    gestor: GestorUsuarios = Depends(get_gestor),
):
    # 🔒 Baja física: solo corrección de capturas. La baja normal es /estatus
    return MensajeOut.desde_resultado(gestor.eliminar_definitivo(admin, usuario_id))

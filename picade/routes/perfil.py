# picade/routes/perfil.py
from fastapi import APIRouter, Depends

from picade.core.deps import get_current_session, get_gestor, get_motor
from picade.schemas.comun import MensajeOut
from picade.schemas.usuarios import CredencialesIn, PerfilIn
from picade.services.auth_service import ContextoSesion, MotorAutenticacion
from picade.services.usuarios_service import GestorUsuarios

router = APIRouter(prefix="/perfil", tags=["Perfil"])


@router.get("")
def ver_perfil(
    ctx: ContextoSesion = Depends(get_current_session),
    gestor: GestorUsuarios = Depends(get_gestor),
):
    return gestor.consultar_perfil(ctx)


@router.put("", response_model=MensajeOut)
def actualizar_perfil(
    payload: PerfilIn,
    ctx: ContextoSesion = Depends(get_current_session),
    gestor: GestorUsuarios = Depends(get_gestor),
):
    return MensajeOut.desde_resultado(gestor.editar_perfil(ctx, payload))


@router.put("/credenciales")
def actualizar_credenciales(
    payload: CredencialesIn,
    ctx: ContextoSesion = Depends(get_current_session),
    gestor: GestorUsuarios = Depends(get_gestor),
    motor: MotorAutenticacion = Depends(get_motor),
):
    resultado = gestor.actualizar_credenciales(ctx, payload)
    out = MensajeOut.desde_resultado(resultado).model_dump()

    # Cambio de contraseña -> nuevo id de sesión
    if payload.nueva_password and resultado.hubo_cambios:
        nueva = motor.regenerar(ctx)
        out["access_token"] = nueva.access_token
        out["token_type"] = "bearer"
    return out

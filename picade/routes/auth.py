# picade/routes/auth.py
from typing import Optional

from fastapi import APIRouter, Depends

from picade.core.deps import get_gestor, get_motor, get_optional_session_id
from picade.schemas.auth import LoginIn, LoginOut
from picade.schemas.usuarios import RegistroIn
from picade.services.auth_service import MotorAutenticacion, SesionEmitida
from picade.services.usuarios_service import GestorUsuarios

router = APIRouter(prefix="/auth", tags=["auth"])


def _sesion_out(sesion: SesionEmitida) -> dict:
    return {
        "access_token": sesion.access_token,
        "token_type": "bearer",
        "ruta": sesion.ruta,  # dashboard según rol
        "user": {
            "id": sesion.usuario_id,
            "rol": sesion.rol.etiqueta,
            "id_rol": int(sesion.rol),
        },
    }


@router.post("/login", response_model=LoginOut)
def login(
    payload: LoginIn,
    motor: MotorAutenticacion = Depends(get_motor),
    sid_anterior: Optional[str] = Depends(get_optional_session_id),
):
    sesion = motor.autenticar(
        payload.credencial,
        payload.password,
        recordar=payload.recordar,
        sesion_anterior=sid_anterior,
    )
    return {"ok": True, **_sesion_out(sesion)}


@router.post("/logout")
def logout(
    motor: MotorAutenticacion = Depends(get_motor),
    sid: Optional[str] = Depends(get_optional_session_id),
):
    # Sin sesión (o ya cerrada) también responde ok
    motor.cerrar_sesion(sid)
    return {"ok": True}


@router.post("/register", status_code=201)
def register(payload: RegistroIn, gestor: GestorUsuarios = Depends(get_gestor)):
    alta = gestor.registrar_publico(payload)

    out = {"ok": True, "alerta": "success", "detail": alta.mensaje, "usuario_id": alta.usuario_id}
    if alta.sesion is not None:
        out.update(_sesion_out(alta.sesion))
    return out

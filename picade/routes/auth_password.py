# picade/routes/auth_password.py
from fastapi import APIRouter, Depends

from picade.core.config import Settings, get_settings
from picade.core.deps import get_protocolo_reinicio
from picade.schemas.auth import ResetIn, ResetRequestIn
from picade.schemas.comun import MensajeOut
from picade.services.errores import UsuarioNoEncontrado
from picade.services.password_reset import MENSAJE_ENVIADO, MENSAJE_RESTABLECIDA, ProtocoloReinicio

router = APIRouter(prefix="/auth/password", tags=["auth"])


@router.post("/email", response_model=MensajeOut)
def send_reset_link(
    payload: ResetRequestIn,
    protocolo: ProtocoloReinicio = Depends(get_protocolo_reinicio),
    settings: Settings = Depends(get_settings),
):
    try:
        protocolo.solicitar(str(payload.email))
    except UsuarioNoEncontrado:
        if not settings.reset_anti_enumeration:
            raise
        # Modo anti-enumeración: misma respuesta exista o no el correo
    return MensajeOut(detail=MENSAJE_ENVIADO)


@router.post("/reset", response_model=MensajeOut)
def reset_password(
    payload: ResetIn,
    protocolo: ProtocoloReinicio = Depends(get_protocolo_reinicio),
):
    protocolo.restablecer(str(payload.email), payload.token, payload.password)
    return MensajeOut(detail=MENSAJE_RESTABLECIDA)

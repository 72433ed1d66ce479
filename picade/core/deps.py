# picade/core/deps.py
from typing import Optional

from fastapi import BackgroundTasks, Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from picade.core.security import decode_token
from picade.db.session import get_db
from picade.services.auth_service import ContextoSesion, MotorAutenticacion
from picade.services.password_reset import Notificador, ProtocoloReinicio
from picade.services.procedimientos import ProcedimientosAlmacenados
from picade.services.usuarios_service import GestorUsuarios

security = HTTPBearer(auto_error=False)


def get_procedimientos(db: Session = Depends(get_db)) -> ProcedimientosAlmacenados:
    return ProcedimientosAlmacenados(db)


def get_notificador() -> Notificador:
    return Notificador()


def get_motor(db: Session = Depends(get_db)) -> MotorAutenticacion:
    return MotorAutenticacion(db)


def get_gestor(
    db: Session = Depends(get_db),
    sp: ProcedimientosAlmacenados = Depends(get_procedimientos),
    motor: MotorAutenticacion = Depends(get_motor),
) -> GestorUsuarios:
    return GestorUsuarios(db, procedimientos=sp, motor=motor)


def get_protocolo_reinicio(
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    notificador: Notificador = Depends(get_notificador),
) -> ProtocoloReinicio:
    return ProtocoloReinicio(db, notificador=notificador, programar=background.add_task)


def get_optional_session_id(
    creds: HTTPAuthorizationCredentials = Depends(security),
) -> Optional[str]:
    """sid del token si viene y es válido; login/logout no lo exigen."""
    if not creds or not creds.credentials:
        return None
    try:
        payload = decode_token(creds.credentials)
    except ValueError:
        return None
    return payload.get("sid")


def get_current_session(
    creds: HTTPAuthorizationCredentials = Depends(security),
    motor: MotorAutenticacion = Depends(get_motor),
) -> ContextoSesion:
    if not creds or not creds.credentials:
        raise HTTPException(status_code=401, detail="No autenticado")

    try:
        payload = decode_token(creds.credentials)
    except ValueError:
        raise HTTPException(status_code=401, detail="Token inválido")

    user_id = payload.get("sub")
    sid = payload.get("sid")
    if not user_id or not sid:
        raise HTTPException(status_code=401, detail="Token sin 'sub'/'sid'")

    ctx = motor.resolver_sesion(sid, int(user_id))
    if ctx is None:
        raise HTTPException(status_code=401, detail="Sesión no válida o expirada")

    return ctx


def require_admin(ctx: ContextoSesion = Depends(get_current_session)) -> ContextoSesion:
    if not ctx.es_admin:
        raise HTTPException(status_code=403, detail="Requiere rol Administrador")
    return ctx

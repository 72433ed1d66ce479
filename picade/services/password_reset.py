# picade/services/password_reset.py
"""
Recuperación de contraseña por token de un solo uso.

- solicitar(): genera token (se guarda hasheado, uno por correo) y lo entrega
  al notificador.
- restablecer(): valida token + correo + vigencia, cambia el hash, rota
  remember_token y consume el token en la MISMA transacción.
"""
import logging
from datetime import timedelta
from typing import Any, Callable, Optional

from sqlalchemy import delete, func
from sqlalchemy.orm import Session

from picade.core.config import Settings, get_settings
from picade.core.logging_utils import audit_logger
from picade.core.security import hash_password, new_random_token, utcnow, verify_password
from picade.models.sesiones import PasswordResetToken
from picade.models.usuarios import Usuario
from picade.services.errores import ReinicioLimitado, TokenInvalido, UsuarioNoEncontrado

logger = logging.getLogger(__name__)
audit = audit_logger()

MENSAJE_ENVIADO = "¡Enlace enviado! Revisa tu bandeja de entrada."
MENSAJE_RESTABLECIDA = "¡Contraseña restablecida! Ahora puedes iniciar sesión."
MENSAJE_NO_ENCONTRADO = "No encontramos un usuario con ese correo."


class Notificador:
    """
    Salida de notificaciones. El envío real de correo está fuera de este
    servicio; por defecto solo se registra el evento (nunca el token).
    """

    def enlace_reinicio(self, email: str, token: str) -> None:
        logger.info("Enlace de restablecimiento generado para %s", email)

    def contrasena_restablecida(self, usuario_id: int, email: str) -> None:
        logger.info("PasswordWasReset usuario=%s email=%s", usuario_id, email)


Programador = Callable[..., Any]


def _inmediato(fn: Callable[..., Any], *args: Any) -> None:
    fn(*args)


def _ejecutar_sin_bloquear(fn: Callable[..., Any], *args: Any) -> None:
    # Fire-and-forget: una falla del aviso no revierte el restablecimiento
    try:
        fn(*args)
    except Exception:
        logger.exception("Falló la notificación %s", getattr(fn, "__name__", fn))


def _buscar_por_email(db: Session, email: str) -> Optional[Usuario]:
    return db.query(Usuario).filter(func.lower(Usuario.email) == email.strip().lower()).first()


class ProtocoloReinicio:
    def __init__(
        self,
        db: Session,
        notificador: Optional[Notificador] = None,
        programar: Optional[Programador] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.notificador = notificador or Notificador()
        # En rutas: BackgroundTasks.add_task
        self.programar = programar or _inmediato
        self.settings = settings or get_settings()

    def solicitar(self, email: str) -> str:
        usuario = _buscar_por_email(self.db, email)
        if usuario is None:
            audit.info("reset solicitado para correo desconocido")
            raise UsuarioNoEncontrado(MENSAJE_NO_ENCONTRADO)

        clave = usuario.email.lower()
        ahora = utcnow()

        existente = self.db.get(PasswordResetToken, clave)
        if existente is not None:
            espera = timedelta(seconds=self.settings.reset_throttle_seconds)
            if ahora - existente.created_at < espera:
                raise ReinicioLimitado()
            self.db.delete(existente)
            self.db.flush()

        token = new_random_token(48)
        self.db.add(PasswordResetToken(email=clave, token=hash_password(token), created_at=ahora))
        self.db.commit()

        self.notificador.enlace_reinicio(usuario.email, token)
        audit.info("reset solicitado usuario=%s", usuario.id)
        return token

    def restablecer(self, email: str, token: str, nueva_password: str) -> Usuario:
        clave = email.strip().lower()
        registro = self.db.get(PasswordResetToken, clave)
        if registro is None:
            raise TokenInvalido()

        ttl = timedelta(minutes=self.settings.reset_token_ttl_min)
        if utcnow() - registro.created_at > ttl:
            self.db.delete(registro)
            self.db.commit()
            raise TokenInvalido()

        if not verify_password(token, registro.token):
            raise TokenInvalido()

        # Consumir primero: solo la petición que borra la fila sigue adelante
        consumido = self.db.execute(
            delete(PasswordResetToken)
            .where(PasswordResetToken.email == clave, PasswordResetToken.token == registro.token)
            .execution_options(synchronize_session=False)
        )
        self.db.expunge(registro)
        if consumido.rowcount != 1:
            self.db.rollback()
            audit.warning("reset rechazado: token ya consumido email=%s", clave)
            raise TokenInvalido()

        usuario = _buscar_por_email(self.db, clave)
        if usuario is None:
            # La cuenta desapareció después de pedir el token
            self.db.commit()
            raise TokenInvalido()

        usuario.password_hash = hash_password(nueva_password)
        usuario.remember_token = new_random_token(45)
        self.db.commit()

        audit.info("reset completado usuario=%s", usuario.id)
        self.programar(_ejecutar_sin_bloquear, self.notificador.contrasena_restablecida, usuario.id, usuario.email)
        return usuario

# picade/services/auth_service.py
"""
Motor de autenticación.

Verificación en 3 capas, en este orden:
  1. EXISTENCIA  -> si no existe: mensaje genérico.
  2. ESTATUS     -> si Activo=0: mensaje específico (contactar al admin),
                    sin importar si la contraseña es correcta.
  3. CONTRASEÑA  -> si no coincide: el MISMO mensaje genérico de la capa 1.

Las sesiones viven en la tabla Sesiones; el JWT solo transporta su id.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import func
from sqlalchemy.orm import Session

from picade.core.config import Settings, get_settings
from picade.core.logging_utils import audit_logger
from picade.core.security import (
    create_access_token,
    hash_password,
    matches_legacy_plaintext,
    needs_rehash,
    new_random_token,
    utcnow,
    verify_password,
)
from picade.models.roles import Rol, ruta_por_rol
from picade.models.sesiones import SesionUsuario
from picade.models.usuarios import Usuario
from picade.services.errores import CredencialesInvalidas, CuentaDesactivada, UsuarioNoEncontrado

logger = logging.getLogger(__name__)
audit = audit_logger()


@dataclass(frozen=True)
class ContextoSesion:
    """Identidad del actor; se pasa explícita a cada operación que la necesita."""

    usuario_id: int
    rol: Rol
    sesion_id: str

    @property
    def es_admin(self) -> bool:
        return self.rol is Rol.ADMINISTRADOR


@dataclass(frozen=True)
class SesionEmitida:
    sesion_id: str
    access_token: str
    expira: datetime
    recordar: bool
    usuario_id: int
    rol: Rol

    @property
    def contexto(self) -> ContextoSesion:
        return ContextoSesion(usuario_id=self.usuario_id, rol=self.rol, sesion_id=self.sesion_id)

    @property
    def ruta(self) -> str:
        return ruta_por_rol(self.rol)


def campo_de_credencial(credencial: str) -> str:
    """'email' si parece correo bien formado; si no, se trata como Ficha."""
    try:
        validate_email(credencial, check_deliverability=False)
    except EmailNotValidError:
        return "ficha"
    return "email"


def buscar_por_credencial(db: Session, credencial: str) -> Optional[Usuario]:
    credencial = (credencial or "").strip()
    if campo_de_credencial(credencial) == "email":
        q = db.query(Usuario).filter(func.lower(Usuario.email) == credencial.lower())
    else:
        q = db.query(Usuario).filter(Usuario.ficha == credencial)
    return q.first()


class MotorAutenticacion:
    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()

    # -----------------------------
    # Login
    # -----------------------------
    def autenticar(
        self,
        credencial: str,
        password: str,
        recordar: bool = False,
        sesion_anterior: Optional[str] = None,
    ) -> SesionEmitida:
        usuario = buscar_por_credencial(self.db, credencial)

        # CAPA 1: existencia
        if usuario is None:
            audit.info("login rechazado: credencial desconocida")
            raise CredencialesInvalidas()

        # CAPA 2: estatus (antes que la contraseña)
        if not usuario.activo:
            audit.info("login rechazado: cuenta desactivada usuario=%s", usuario.id)
            raise CuentaDesactivada()

        # CAPA 3: contraseña
        if not self._verificar_password(usuario, password):
            audit.info("login rechazado: contraseña incorrecta usuario=%s", usuario.id)
            raise CredencialesInvalidas()

        sesion = self.iniciar_sesion(usuario, recordar=recordar, sesion_anterior=sesion_anterior)
        audit.info("login ok usuario=%s rol=%s recordar=%s", usuario.id, usuario.rol.name, recordar)
        return sesion

    def _verificar_password(self, usuario: Usuario, password: str) -> bool:
        guardado = usuario.password_hash

        if verify_password(password, guardado):
            # Mantenimiento: parámetros del hash desactualizados
            if needs_rehash(guardado):
                usuario.password_hash = hash_password(password)
                self.db.commit()
                logger.info("Hash actualizado en login usuario=%s", usuario.id)
            return True

        if self.settings.allow_legacy_plaintext and matches_legacy_plaintext(password, guardado):
            # Migración inmediata de texto plano heredado
            usuario.password_hash = hash_password(password)
            self.db.commit()
            logger.warning("Contraseña heredada en texto plano migrada a hash usuario=%s", usuario.id)
            return True

        return False

    # -----------------------------
    # Sesiones
    # -----------------------------
    def iniciar_sesion(
        self,
        usuario: Usuario,
        recordar: bool = False,
        sesion_anterior: Optional[str] = None,
    ) -> SesionEmitida:
        """
        Emite una sesión nueva. Si había una anterior, se revoca DESPUÉS de
        confirmar la escritura de la nueva (anti-fixation sin dejar al usuario
        a medio camino).
        """
        ahora = utcnow()
        if recordar:
            duracion = timedelta(days=self.settings.remember_days)
        else:
            duracion = timedelta(minutes=self.settings.jwt_expires_min)

        nueva = SesionUsuario(
            id=new_random_token(32),
            usuario_id=usuario.id,
            recordar=recordar,
            remember_token=usuario.remember_token if recordar else None,
            creada=ahora,
            expira=ahora + duracion,
        )
        self.db.add(nueva)
        self.db.commit()

        if sesion_anterior and sesion_anterior != nueva.id:
            self._revocar(sesion_anterior)

        token = create_access_token(
            {"sub": str(usuario.id), "sid": nueva.id, "rol": int(usuario.rol)},
            expires_minutes=int(duracion.total_seconds() // 60),
        )
        return SesionEmitida(
            sesion_id=nueva.id,
            access_token=token,
            expira=nueva.expira,
            recordar=recordar,
            usuario_id=usuario.id,
            rol=usuario.rol,
        )

    def regenerar(self, contexto: ContextoSesion) -> SesionEmitida:
        """Nuevo id de sesión con los mismos datos (cambio de contraseña, etc.)."""
        actual = self.db.get(SesionUsuario, contexto.sesion_id)
        usuario = self.db.get(Usuario, contexto.usuario_id)
        if usuario is None:
            raise UsuarioNoEncontrado("La cuenta asociada a la sesión ya no existe.")
        recordar = bool(actual.recordar) if actual else False
        return self.iniciar_sesion(usuario, recordar=recordar, sesion_anterior=contexto.sesion_id)

    def cerrar_sesion(self, sesion_id: Optional[str]) -> None:
        # Idempotente: sesión inexistente o ya revocada no es error
        if sesion_id:
            self._revocar(sesion_id)
            audit.info("logout sesion=%s", sesion_id[:8])

    def _revocar(self, sesion_id: str) -> None:
        sesion = self.db.get(SesionUsuario, sesion_id)
        if sesion is not None and sesion.revocada is None:
            sesion.revocada = utcnow()
            self.db.commit()

    def resolver_sesion(self, sesion_id: str, usuario_id: int) -> Optional[ContextoSesion]:
        sesion = self.db.get(SesionUsuario, sesion_id)
        if sesion is None or sesion.usuario_id != usuario_id:
            return None
        if sesion.revocada is not None or sesion.expira <= utcnow():
            return None

        usuario = self.db.get(Usuario, usuario_id)
        if usuario is None or not usuario.activo:
            return None
        # Restablecer la contraseña rota remember_token -> mata sesiones "recordarme"
        if sesion.recordar and sesion.remember_token != usuario.remember_token:
            return None

        return ContextoSesion(usuario_id=usuario.id, rol=usuario.rol, sesion_id=sesion.id)

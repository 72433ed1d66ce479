# picade/services/procedimientos.py
"""
Capa autoritativa: procedimientos almacenados de MySQL.

Aquí NO se valida negocio (duplicados, paradojas de fechas, edad, bloqueos
operativos): eso lo hacen los SP dentro de su transacción. Esta clase solo
arma el CALL, regresa las filas y convierte cualquier fallo del driver en
ErrorProcedimiento.
"""
import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from picade.models.roles import Rol
from picade.services.errores import ErrorProcedimiento

logger = logging.getLogger(__name__)


class Accion(str, Enum):
    CREADA = "CREADA"
    ACTUALIZADA = "ACTUALIZADA"
    SIN_CAMBIOS = "SIN_CAMBIOS"
    ESTATUS_CAMBIADO = "ESTATUS_CAMBIADO"
    ELIMINADA = "ELIMINADA"


@dataclass(frozen=True)
class ResultadoSP:
    accion: Accion
    mensaje: str

    @property
    def hubo_cambios(self) -> bool:
        return self.accion is not Accion.SIN_CAMBIOS


def _fk(valor: Optional[int]) -> int:
    # Convención de los SP: 0 = "sin selección" (el SP lo guarda como NULL)
    return valor if valor else 0


def _resultado(filas: list[dict[str, Any]], accion_default: Accion, mensaje_default: str) -> ResultadoSP:
    primera = filas[0] if filas else {}
    accion_raw = (primera.get("Accion") or "").strip().upper()
    accion = Accion.SIN_CAMBIOS if accion_raw == Accion.SIN_CAMBIOS.value else accion_default
    return ResultadoSP(
        accion=accion,
        mensaje=primera.get("Mensaje") or mensaje_default,
    )


class ProcedimientosAlmacenados:
    def __init__(self, db: Session):
        self.db = db

    def _call(self, nombre: str, params: list[Any]) -> list[dict[str, Any]]:
        marcadores = ", ".join(f":p{i}" for i in range(len(params)))
        sql = text(f"CALL {nombre}({marcadores})")
        try:
            result = self.db.execute(sql, {f"p{i}": v for i, v in enumerate(params)})
            filas = [dict(r) for r in result.mappings().all()] if result.returns_rows else []
            self.db.commit()
        except DBAPIError as e:
            self.db.rollback()
            raw = str(e.orig) if e.orig is not None else str(e)
            logger.warning("SP %s falló: %s", nombre, raw)
            raise ErrorProcedimiento(nombre, raw) from e
        return filas

    # -----------------------------
    # Alta
    # -----------------------------
    def registrar_usuario_nuevo(
        self,
        *,
        ficha: str,
        email: str,
        password_hash: str,
        nombre: str,
        apellido_paterno: str,
        apellido_materno: str,
        fecha_nacimiento: date,
        fecha_ingreso: date,
    ) -> int:
        filas = self._call(
            "SP_RegistrarUsuarioNuevo",
            [ficha, email, password_hash, nombre, apellido_paterno, apellido_materno,
             fecha_nacimiento, fecha_ingreso],
        )
        return int(filas[0]["Id_Usuario"])

    def registrar_usuario_por_admin(
        self,
        *,
        actor_id: int,
        ficha: str,
        foto_perfil_url: Optional[str],
        nombre: str,
        apellido_paterno: str,
        apellido_materno: str,
        fecha_nacimiento: date,
        fecha_ingreso: date,
        email: str,
        password_hash: str,
        rol: Rol,
        id_regimen: int,
        id_puesto: Optional[int],
        id_centro_trabajo: Optional[int],
        id_departamento: Optional[int],
        id_region: int,
        id_gerencia: Optional[int],
        nivel: Optional[str],
        clasificacion: Optional[str],
    ) -> int:
        filas = self._call(
            "SP_RegistrarUsuarioPorAdmin",
            [actor_id, ficha, foto_perfil_url, nombre, apellido_paterno, apellido_materno,
             fecha_nacimiento, fecha_ingreso, email, password_hash, int(rol),
             id_regimen, _fk(id_puesto), _fk(id_centro_trabajo), _fk(id_departamento),
             id_region, _fk(id_gerencia), nivel, clasificacion],
        )
        return int(filas[0]["Id_Usuario"])

    # -----------------------------
    # Consultas
    # -----------------------------
    def consultar_usuario_por_admin(self, usuario_id: int) -> Optional[dict[str, Any]]:
        filas = self._call("SP_ConsultarUsuarioPorAdmin", [usuario_id])
        return filas[0] if filas else None

    def consultar_perfil_propio(self, usuario_id: int) -> Optional[dict[str, Any]]:
        filas = self._call("SP_ConsultarPerfilPropio", [usuario_id])
        return filas[0] if filas else None

    def listar_instructores_activos(self) -> list[dict[str, Any]]:
        return self._call("SP_ListarInstructoresActivos", [])

    def listar_instructores_historial(self) -> list[dict[str, Any]]:
        return self._call("SP_ListarInstructoresHistorial", [])

    def listar_hijos_catalogo(self, procedimiento: str, padre_id: int) -> list[dict[str, Any]]:
        return self._call(procedimiento, [padre_id])

    # -----------------------------
    # Edición
    # -----------------------------
    def editar_usuario_por_admin(
        self,
        *,
        actor_id: int,
        usuario_id: int,
        ficha: str,
        foto_perfil_url: Optional[str],
        nombre: str,
        apellido_paterno: str,
        apellido_materno: str,
        fecha_nacimiento: date,
        fecha_ingreso: date,
        email: str,
        password_hash: Optional[str],
        rol: Rol,
        id_regimen: int,
        id_puesto: Optional[int],
        id_centro_trabajo: Optional[int],
        id_departamento: Optional[int],
        id_region: int,
        id_gerencia: Optional[int],
        nivel: Optional[str],
        clasificacion: Optional[str],
    ) -> ResultadoSP:
        # password_hash=None -> el SP conserva la contraseña actual
        filas = self._call(
            "SP_EditarUsuarioPorAdmin",
            [actor_id, usuario_id, ficha, foto_perfil_url, nombre, apellido_paterno,
             apellido_materno, fecha_nacimiento, fecha_ingreso, email, password_hash,
             int(rol), id_regimen, _fk(id_puesto), _fk(id_centro_trabajo),
             _fk(id_departamento), id_region, _fk(id_gerencia), nivel, clasificacion],
        )
        return _resultado(filas, Accion.ACTUALIZADA, "Usuario actualizado correctamente.")

    def editar_perfil_propio(
        self,
        *,
        actor_id: int,
        ficha: str,
        foto_perfil_url: Optional[str],
        nombre: str,
        apellido_paterno: str,
        apellido_materno: str,
        fecha_nacimiento: date,
        fecha_ingreso: date,
        id_regimen: int,
        id_puesto: Optional[int],
        id_centro_trabajo: Optional[int],
        id_departamento: Optional[int],
        id_region: int,
        id_gerencia: Optional[int],
        nivel: Optional[str],
        clasificacion: Optional[str],
    ) -> ResultadoSP:
        filas = self._call(
            "SP_EditarPerfilPropio",
            [actor_id, ficha, foto_perfil_url, nombre, apellido_paterno, apellido_materno,
             fecha_nacimiento, fecha_ingreso, id_regimen, _fk(id_puesto),
             _fk(id_centro_trabajo), _fk(id_departamento), id_region, _fk(id_gerencia),
             nivel, clasificacion],
        )
        return _resultado(filas, Accion.ACTUALIZADA, "Perfil actualizado.")

    def actualizar_credenciales_propio(
        self, *, actor_id: int, email: Optional[str], password_hash: Optional[str]
    ) -> ResultadoSP:
        filas = self._call("SP_ActualizarCredencialesPropio", [actor_id, email, password_hash])
        return _resultado(filas, Accion.ACTUALIZADA, "Credenciales actualizadas correctamente.")

    # -----------------------------
    # Estatus / baja
    # -----------------------------
    def cambiar_estatus_usuario(self, *, actor_id: int, usuario_id: int, estatus: int) -> ResultadoSP:
        filas = self._call("SP_CambiarEstatusUsuario", [actor_id, usuario_id, estatus])
        return _resultado(filas, Accion.ESTATUS_CAMBIADO, "Estatus actualizado correctamente.")

    def eliminar_usuario_definitivamente(self, *, actor_id: int, usuario_id: int) -> ResultadoSP:
        filas = self._call("SP_EliminarUsuarioDefinitivamente", [actor_id, usuario_id])
        return _resultado(filas, Accion.ELIMINADA, "Usuario eliminado permanentemente.")

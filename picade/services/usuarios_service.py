# picade/services/usuarios_service.py
"""
Ciclo de vida de cuentas (alta, edición, estatus, baja forense).

Las reglas de negocio viven en los SP (duplicados, paradojas de fechas, edad,
vigencia de catálogos, candados operativos). Aquí solo se da forma a la
entrada, se llama al SP y se reconcilia el resultado. Cualquier fallo del SP
sale como ErrorCicloVida (mensaje limpio + severidad), nunca crudo.
"""
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from sqlalchemy import case, or_
from sqlalchemy.orm import Session

from picade.core.logging_utils import audit_logger
from picade.core.security import hash_password, verify_password
from picade.models.roles import Rol
from picade.models.usuarios import InfoPersonal, Usuario
from picade.schemas.usuarios import (
    CredencialesIn,
    PerfilIn,
    RegistroIn,
    UsuarioAdminIn,
    UsuarioAdminUpdateIn,
)
from picade.services.auth_service import ContextoSesion, MotorAutenticacion, SesionEmitida
from picade.services.errores import (
    ErrorCicloVida,
    ErrorProcedimiento,
    ErrorValidacion,
    UsuarioNoEncontrado,
)
from picade.services.procedimientos import ProcedimientosAlmacenados, ResultadoSP

logger = logging.getLogger(__name__)
audit = audit_logger()

POR_PAGINA = 20

_CAMPOS_SECRETOS = {"password", "password_confirmation", "nueva_password", "nueva_password_confirmation", "password_actual"}


@dataclass(frozen=True)
class ResultadoAlta:
    usuario_id: int
    mensaje: str
    sesion: Optional[SesionEmitida] = None


def _entrada(datos) -> dict[str, Any]:
    """Valores originales para re-captura (sin contraseñas)."""
    return datos.model_dump(mode="json", exclude=_CAMPOS_SECRETOS & set(type(datos).model_fields))


def _mayus(valor: Optional[str]) -> Optional[str]:
    if valor is None:
        return None
    return valor.strip().upper()


class GestorUsuarios:
    def __init__(
        self,
        db: Session,
        procedimientos: Optional[ProcedimientosAlmacenados] = None,
        motor: Optional[MotorAutenticacion] = None,
    ):
        self.db = db
        self.sp = procedimientos or ProcedimientosAlmacenados(db)
        self.motor = motor or MotorAutenticacion(db)

    def _fallo(self, operacion: str, err: ErrorProcedimiento, entrada=None, actor=None, objetivo=None) -> ErrorCicloVida:
        error = ErrorCicloVida.desde_procedimiento(err, entrada=entrada)
        audit.warning(
            "%s fallido actor=%s objetivo=%s codigo=%s severidad=%s",
            operacion, actor, objetivo, error.codigo, error.severidad.value,
        )
        return error

    # =========================
    # Alta
    # =========================
    def registrar_publico(self, datos: RegistroIn) -> ResultadoAlta:
        """Auto-registro: rol Participante (lo pone el SP) + login automático."""
        try:
            nuevo_id = self.sp.registrar_usuario_nuevo(
                ficha=datos.ficha,
                email=str(datos.email),
                password_hash=hash_password(datos.password),  # el SP nunca ve texto plano
                nombre=datos.nombre,
                apellido_paterno=datos.apellido_paterno,
                apellido_materno=datos.apellido_materno,
                fecha_nacimiento=datos.fecha_nacimiento,
                fecha_ingreso=datos.fecha_ingreso,
            )
        except ErrorProcedimiento as e:
            raise self._fallo("registro_publico", e, entrada=_entrada(datos)) from e

        audit.info("registro_publico ok usuario=%s", nuevo_id)

        sesion = None
        usuario = self.db.get(Usuario, nuevo_id)
        if usuario is not None:
            sesion = self.motor.iniciar_sesion(usuario)

        return ResultadoAlta(
            usuario_id=nuevo_id,
            mensaje="¡Bienvenido! Tu cuenta ha sido creada exitosamente.",
            sesion=sesion,
        )

    def registrar_por_admin(self, ctx: ContextoSesion, datos: UsuarioAdminIn) -> ResultadoAlta:
        try:
            nuevo_id = self.sp.registrar_usuario_por_admin(
                actor_id=ctx.usuario_id,  # auditoría: quién creó el registro
                ficha=datos.ficha.strip(),
                foto_perfil_url=datos.foto_perfil_url,
                nombre=_mayus(datos.nombre),
                apellido_paterno=_mayus(datos.apellido_paterno),
                apellido_materno=_mayus(datos.apellido_materno),
                fecha_nacimiento=datos.fecha_nacimiento,
                fecha_ingreso=datos.fecha_ingreso,
                email=str(datos.email).strip(),
                password_hash=hash_password(datos.password),
                rol=datos.id_rol,
                id_regimen=datos.id_regimen,
                id_puesto=datos.id_puesto,
                id_centro_trabajo=datos.id_centro_trabajo,
                id_departamento=datos.id_departamento,
                id_region=datos.id_region,
                id_gerencia=datos.id_gerencia,
                nivel=_mayus(datos.nivel),
                clasificacion=_mayus(datos.clasificacion),
            )
        except ErrorProcedimiento as e:
            raise self._fallo("registro_admin", e, entrada=_entrada(datos), actor=ctx.usuario_id) from e

        audit.info("registro_admin ok actor=%s usuario=%s rol=%s", ctx.usuario_id, nuevo_id, datos.id_rol.name)
        return ResultadoAlta(
            usuario_id=nuevo_id,
            mensaje=f"Colaborador registrado exitosamente. ID: #{nuevo_id}",
        )

    # =========================
    # Consultas
    # =========================
    def consultar(self, usuario_id: int) -> dict[str, Any]:
        try:
            fila = self.sp.consultar_usuario_por_admin(usuario_id)
        except ErrorProcedimiento as e:
            raise self._fallo("consulta_admin", e, objetivo=usuario_id) from e
        if fila is None:
            raise UsuarioNoEncontrado("ERROR 404: El usuario solicitado no existe en la base de datos.")
        return fila

    def consultar_perfil(self, ctx: ContextoSesion) -> dict[str, Any]:
        try:
            fila = self.sp.consultar_perfil_propio(ctx.usuario_id)
        except ErrorProcedimiento as e:
            raise self._fallo("consulta_perfil", e, actor=ctx.usuario_id) from e
        if fila is None:
            raise UsuarioNoEncontrado("Error de integridad: No se pudo cargar tu perfil asociado.")
        return fila

    def listar_instructores(self, historial: bool = False) -> list[dict[str, Any]]:
        try:
            if historial:
                return self.sp.listar_instructores_historial()
            return self.sp.listar_instructores_activos()
        except ErrorProcedimiento as e:
            raise self._fallo("listar_instructores", e) from e

    def listar(
        self,
        q: Optional[str] = None,
        roles: Optional[Iterable[Rol]] = None,
        estatus: Optional[Iterable[bool]] = None,
        orden: str = "rol",
        pagina: int = 1,
    ) -> dict[str, Any]:
        """Directorio de usuarios con búsqueda, filtros, orden y paginación."""
        nombre_completo = (
            InfoPersonal.nombre + " " + InfoPersonal.apellido_paterno + " " + InfoPersonal.apellido_materno
        )
        query = self.db.query(Usuario).outerjoin(InfoPersonal, Usuario.info_personal_id == InfoPersonal.id)

        if q:
            # Comodines de LIKE se buscan como texto literal
            literal = q.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            patron = f"%{literal}%"
            query = query.filter(
                or_(
                    Usuario.ficha.like(patron, escape="\\"),
                    nombre_completo.like(patron, escape="\\"),
                    Usuario.email.like(patron, escape="\\"),
                )
            )
        roles = list(roles or [])
        if roles:
            query = query.filter(Usuario.rol.in_(roles))
        estatus = list(estatus or [])
        if estatus:
            query = query.filter(Usuario.activo.in_(estatus))

        # Administrador, Coordinador, Instructor, Participante (= orden de los ids)
        por_rol = case(*((Usuario.rol == r, int(r)) for r in Rol), else_=99)
        ordenes = {
            "folio_desc": [Usuario.ficha.desc()],
            "folio_asc": [Usuario.ficha.asc()],
            "nombre_az": [InfoPersonal.apellido_paterno.asc(), InfoPersonal.nombre.asc()],
            "nombre_za": [InfoPersonal.apellido_paterno.desc(), InfoPersonal.nombre.desc()],
            "activos": [Usuario.activo.desc(), Usuario.ficha.asc()],
            "inactivos": [Usuario.activo.asc(), Usuario.ficha.asc()],
        }
        query = query.order_by(*ordenes.get(orden, [por_rol.asc(), Usuario.ficha.asc()]))

        total = query.count()
        pagina = max(1, pagina)
        usuarios = query.offset((pagina - 1) * POR_PAGINA).limit(POR_PAGINA).all()

        return {
            "items": [
                {
                    "id": int(u.id),
                    "ficha": u.ficha,
                    "email": u.email,
                    "nombre_completo": u.nombre_completo,
                    "rol": u.rol.etiqueta,
                    "id_rol": int(u.rol),
                    "activo": bool(u.activo),
                }
                for u in usuarios
            ],
            "total": total,
            "pagina": pagina,
            "paginas": max(1, -(-total // POR_PAGINA)),
        }

    # =========================
    # Edición
    # =========================
    def editar_por_admin(self, ctx: ContextoSesion, usuario_id: int, datos: UsuarioAdminUpdateIn) -> ResultadoSP:
        # None -> el SP conserva el hash actual (nunca cadena vacía)
        nuevo_hash = hash_password(datos.nueva_password) if datos.nueva_password else None
        try:
            resultado = self.sp.editar_usuario_por_admin(
                actor_id=ctx.usuario_id,
                usuario_id=usuario_id,
                ficha=datos.ficha,
                foto_perfil_url=datos.foto_perfil_url,
                nombre=datos.nombre,
                apellido_paterno=datos.apellido_paterno,
                apellido_materno=datos.apellido_materno,
                fecha_nacimiento=datos.fecha_nacimiento,
                fecha_ingreso=datos.fecha_ingreso,
                email=str(datos.email),
                password_hash=nuevo_hash,
                rol=datos.id_rol,
                id_regimen=datos.id_regimen,
                id_puesto=datos.id_puesto,
                id_centro_trabajo=datos.id_centro_trabajo,
                id_departamento=datos.id_departamento,
                id_region=datos.id_region,
                id_gerencia=datos.id_gerencia,
                nivel=datos.nivel,
                clasificacion=datos.clasificacion,
            )
        except ErrorProcedimiento as e:
            raise self._fallo("edicion_admin", e, entrada=_entrada(datos), actor=ctx.usuario_id, objetivo=usuario_id) from e

        audit.info("edicion_admin actor=%s usuario=%s accion=%s", ctx.usuario_id, usuario_id, resultado.accion.value)
        return resultado

    def editar_perfil(self, ctx: ContextoSesion, datos: PerfilIn) -> ResultadoSP:
        try:
            resultado = self.sp.editar_perfil_propio(
                actor_id=ctx.usuario_id,  # el id sale de la sesión, nunca del request
                ficha=datos.ficha,
                foto_perfil_url=datos.foto_perfil_url,
                nombre=datos.nombre,
                apellido_paterno=datos.apellido_paterno,
                apellido_materno=datos.apellido_materno,
                fecha_nacimiento=datos.fecha_nacimiento,
                fecha_ingreso=datos.fecha_ingreso,
                id_regimen=datos.id_regimen,
                id_puesto=datos.id_puesto,
                id_centro_trabajo=datos.id_centro_trabajo,
                id_departamento=datos.id_departamento,
                id_region=datos.id_region,
                id_gerencia=datos.id_gerencia,
                nivel=datos.nivel,
                clasificacion=datos.clasificacion,
            )
        except ErrorProcedimiento as e:
            raise self._fallo("edicion_perfil", e, entrada=_entrada(datos), actor=ctx.usuario_id) from e

        audit.info("edicion_perfil usuario=%s accion=%s", ctx.usuario_id, resultado.accion.value)
        return resultado

    def actualizar_credenciales(self, ctx: ContextoSesion, datos: CredencialesIn) -> ResultadoSP:
        if datos.nuevo_email is None and datos.nueva_password is None:
            raise ErrorValidacion("No se detectaron cambios. Ingrese un nuevo correo o contraseña.")

        # El SP solo recibe hashes: no puede comparar la contraseña actual en texto plano
        usuario = self.db.get(Usuario, ctx.usuario_id)
        if usuario is None or not verify_password(datos.password_actual, usuario.password_hash):
            audit.info("credenciales rechazadas usuario=%s", ctx.usuario_id)
            raise ErrorValidacion(
                "La contraseña actual es incorrecta. Intente nuevamente.",
                campo="password_actual",
            )

        try:
            resultado = self.sp.actualizar_credenciales_propio(
                actor_id=ctx.usuario_id,
                email=str(datos.nuevo_email) if datos.nuevo_email is not None else None,
                password_hash=hash_password(datos.nueva_password) if datos.nueva_password else None,
            )
        except ErrorProcedimiento as e:
            raise self._fallo("credenciales", e, actor=ctx.usuario_id) from e

        # El SP escribió por fuera del ORM
        self.db.expire(usuario)
        audit.info("credenciales usuario=%s accion=%s", ctx.usuario_id, resultado.accion.value)
        return resultado

    # =========================
    # Estatus y baja
    # =========================
    def cambiar_estatus(self, ctx: ContextoSesion, usuario_id: int, estatus: int) -> ResultadoSP:
        try:
            resultado = self.sp.cambiar_estatus_usuario(
                actor_id=ctx.usuario_id, usuario_id=usuario_id, estatus=int(estatus)
            )
        except ErrorProcedimiento as e:
            raise self._fallo("estatus", e, actor=ctx.usuario_id, objetivo=usuario_id) from e

        audit.info(
            "estatus actor=%s usuario=%s nuevo=%s accion=%s",
            ctx.usuario_id, usuario_id, estatus, resultado.accion.value,
        )
        return resultado

    def eliminar_definitivo(self, ctx: ContextoSesion, usuario_id: int) -> ResultadoSP:
        """Baja física. Solo para corregir capturas erróneas; la baja normal es cambiar_estatus."""
        try:
            resultado = self.sp.eliminar_usuario_definitivamente(actor_id=ctx.usuario_id, usuario_id=usuario_id)
        except ErrorProcedimiento as e:
            raise self._fallo("eliminacion", e, actor=ctx.usuario_id, objetivo=usuario_id) from e

        audit.warning("eliminacion definitiva actor=%s usuario=%s", ctx.usuario_id, usuario_id)
        return resultado

# picade/services/errores.py
"""
Errores de dominio + parser de señales de los procedimientos almacenados.

Los SP fallan con SIGNAL SQLSTATE 45000 y un texto etiquetado, p.ej.:

    SQLSTATE[45000]: <<1644>>: 7 CONFLICTO [409-A]: La Ficha ya está registrada y activa.

`extraer_mensaje` deja solo la parte presentable y `clasificar_alerta` decide
la severidad a partir de ese texto (función pura, se prueba sin BD).
"""
import re
from enum import Enum
from typing import Any, Optional

MENSAJE_GENERICO = "Ocurrió un error inesperado al procesar la solicitud. Por favor intente nuevamente."

_PATRON_SP = re.compile(
    r"(ERROR DE .+|CONFLICTO .+|ACCIÓN DENEGADA .+|BLOQUEO .+|ERROR .+)",
    re.IGNORECASE,
)
_PATRON_CODIGO = re.compile(r"\[(\d{3}(?:-[A-Z])?)\]")


class Severidad(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    DANGER = "danger"


def extraer_mensaje(mensaje_completo: str) -> str:
    m = _PATRON_SP.search(mensaje_completo or "")
    if not m:
        # Nunca mostrar el error técnico al usuario
        return MENSAJE_GENERICO
    # Residuos del driver: ".", ")", comillas del repr de la tupla de PyMySQL
    limpio = m.group(1).rstrip(" .)'\"")
    return limpio or MENSAJE_GENERICO


def extraer_codigo(mensaje: str) -> Optional[str]:
    m = _PATRON_CODIGO.search(mensaje or "")
    return m.group(1) if m else None


def clasificar_alerta(mensaje: str) -> Severidad:
    texto = (mensaje or "").upper()

    # [409-A]: duplicado activo -> el usuario puede actuar (recuperar contraseña)
    if "409-A" in texto:
        return Severidad.WARNING
    # [409-B]: duplicado inactivo -> requiere al administrador
    if "409-B" in texto:
        return Severidad.DANGER
    # Conflicto operativo / concurrencia / 409 a secas -> reintento plausible
    if "CONFLICTO OPERATIVO" in texto or "CONCURRENCIA" in texto or "409" in texto:
        return Severidad.WARNING
    # Bloqueos de política: sin remedio del lado del usuario
    if "BLOQUEO" in texto or "DENEGADA" in texto:
        return Severidad.DANGER
    # [400], [403], [404] y lo no reconocido
    return Severidad.DANGER


# =========================
# Excepciones
# =========================
class ErrorPicade(Exception):
    status_code = 400
    severidad = Severidad.DANGER

    def __init__(self, mensaje: str):
        super().__init__(mensaje)
        self.mensaje = mensaje


class ErrorValidacion(ErrorPicade):
    """Entrada inválida detectada antes de llamar a la capa autoritativa."""

    def __init__(self, mensaje: str, campo: Optional[str] = None):
        super().__init__(mensaje)
        self.campo = campo


class ErrorAutenticacion(ErrorPicade):
    status_code = 401
    tipo = "auth"


class CredencialesInvalidas(ErrorAutenticacion):
    tipo = "credenciales_invalidas"
    MENSAJE = "Credenciales incorrectas."

    def __init__(self):
        super().__init__(self.MENSAJE)


class CuentaDesactivada(ErrorAutenticacion):
    tipo = "cuenta_desactivada"
    MENSAJE = (
        "Su cuenta ha sido desactivada. Contacte al administrador del sistema "
        "para reactivar su acceso."
    )

    def __init__(self):
        super().__init__(self.MENSAJE)


class UsuarioNoEncontrado(ErrorPicade):
    status_code = 404


class TokenInvalido(ErrorPicade):
    MENSAJE = "El token es inválido o ha expirado."

    def __init__(self):
        super().__init__(self.MENSAJE)


class ReinicioLimitado(ErrorPicade):
    status_code = 429
    severidad = Severidad.WARNING
    MENSAJE = "Ya se envió un enlace recientemente. Espere un momento antes de solicitar otro."

    def __init__(self):
        super().__init__(self.MENSAJE)


class ErrorProcedimiento(Exception):
    """Fallo crudo de un SP (o del transporte). Nunca llega tal cual al usuario."""

    def __init__(self, procedimiento: str, raw: str):
        super().__init__(f"{procedimiento}: {raw}")
        self.procedimiento = procedimiento
        self.raw = raw


_STATUS_POR_CODIGO = {"400": 400, "403": 403, "404": 404}


class ErrorCicloVida(ErrorPicade):
    """Error de negocio ya parseado y clasificado, listo para mostrarse."""

    def __init__(
        self,
        mensaje: str,
        severidad: Severidad,
        codigo: Optional[str] = None,
        entrada: Optional[dict[str, Any]] = None,
    ):
        super().__init__(mensaje)
        self.severidad = severidad
        self.codigo = codigo
        self.entrada = entrada or {}

    @property
    def status_code(self) -> int:  # type: ignore[override]
        if self.codigo is None:
            if self.mensaje == MENSAJE_GENERICO:
                return 500
            # Etiqueta sin código ("CONFLICTO OPERATIVO: ...", "BLOQUEO: ...")
            return 409 if self.severidad is Severidad.WARNING else 400
        if self.codigo.startswith("409"):
            return 409
        return _STATUS_POR_CODIGO.get(self.codigo, 400)

    @classmethod
    def desde_procedimiento(cls, err: ErrorProcedimiento, entrada: Optional[dict[str, Any]] = None) -> "ErrorCicloVida":
        mensaje = extraer_mensaje(err.raw)
        return cls(
            mensaje=mensaje,
            severidad=clasificar_alerta(mensaje),
            codigo=extraer_codigo(mensaje),
            entrada=entrada,
        )

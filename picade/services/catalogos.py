# picade/services/catalogos.py
"""Cascadas de catálogos: hijos activos de un padre activo."""
import logging

from picade.services.errores import ErrorPicade, ErrorProcedimiento, extraer_mensaje
from picade.services.procedimientos import ProcedimientosAlmacenados

logger = logging.getLogger(__name__)

# nivel -> (SP, nombre del padre para mensajes)
CASCADAS = {
    "estados": ("SP_ListarEstadosPorPais", "País"),
    "municipios": ("SP_ListarMunicipiosPorEstado", "Estado"),
    "subdirecciones": ("SP_ListarSubdireccionesPorDireccion", "Dirección"),
    "gerencias": ("SP_ListarGerenciasPorSubdireccion", "Subdirección"),
}


class ErrorCatalogo(ErrorPicade):
    def __init__(self, mensaje: str, status_code: int):
        super().__init__(mensaje)
        self.status_code = status_code


def listar_hijos(sp: ProcedimientosAlmacenados, nivel: str, padre_id: int) -> list[dict]:
    procedimiento, padre = CASCADAS[nivel]

    # Red local antes de llegar al SP
    if padre_id <= 0:
        raise ErrorCatalogo(f"ID de {padre} inválido.", 400)

    try:
        return sp.listar_hijos_catalogo(procedimiento, padre_id)
    except ErrorProcedimiento as e:
        # Padre inactivo / inexistente: el SP lo dice con SIGNAL
        raise ErrorCatalogo(extraer_mensaje(e.raw), 422) from e
    except Exception as e:
        logger.exception("Falla inesperada en cascada %s padre=%s", nivel, padre_id)
        raise ErrorCatalogo(f"Error interno al cargar {nivel}.", 500) from e

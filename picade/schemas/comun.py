# picade/schemas/comun.py
from typing import Optional

from pydantic import BaseModel

from picade.services.errores import Severidad
from picade.services.procedimientos import ResultadoSP


class MensajeOut(BaseModel):
    ok: bool = True
    alerta: str = Severidad.SUCCESS.value
    detail: str
    accion: Optional[str] = None

    @classmethod
    def desde_resultado(cls, resultado: ResultadoSP) -> "MensajeOut":
        # SIN_CAMBIOS no es error, pero se muestra distinto (info)
        alerta = Severidad.SUCCESS if resultado.hubo_cambios else Severidad.INFO
        return cls(alerta=alerta.value, detail=resultado.mensaje, accion=resultado.accion.value)

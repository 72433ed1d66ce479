# picade/models/roles.py
from enum import IntEnum

from sqlalchemy import Integer
from sqlalchemy.types import TypeDecorator


class Rol(IntEnum):
    # Ids fijos de Cat_Roles
    ADMINISTRADOR = 1
    COORDINADOR = 2
    INSTRUCTOR = 3
    PARTICIPANTE = 4

    @property
    def etiqueta(self) -> str:
        return self.name.capitalize()


_DASHBOARD_POR_ROL = {
    Rol.ADMINISTRADOR: "/admin/dashboard",
    Rol.COORDINADOR: "/coordinador/dashboard",
    Rol.INSTRUCTOR: "/instructor/dashboard",
    Rol.PARTICIPANTE: "/dashboard",
}


def ruta_por_rol(rol: Rol) -> str:
    return _DASHBOARD_POR_ROL[rol]


class RolType(TypeDecorator):
    """Fk_Rol es INT en BD; en Python siempre es Rol."""

    impl = Integer
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return int(Rol(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Rol(value)

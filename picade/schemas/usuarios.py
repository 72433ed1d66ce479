# picade/schemas/usuarios.py
from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from picade.models.roles import Rol

_TEXTO = ("ficha", "nombre", "apellido_paterno", "apellido_materno", "nivel", "clasificacion", "foto_perfil_url")


def _vacio_a_none(v):
    # Formularios mandan "" cuando el campo no se llenó
    if isinstance(v, str) and not v.strip():
        return None
    return v


class _DatosPersonales(BaseModel):
    ficha: str = Field(min_length=1, max_length=50)
    nombre: str = Field(min_length=1, max_length=100)
    apellido_paterno: str = Field(min_length=1, max_length=100)
    apellido_materno: str = Field(min_length=1, max_length=100)
    fecha_nacimiento: date
    fecha_ingreso: date

    @field_validator(*_TEXTO, mode="before", check_fields=False)
    @classmethod
    def _strip(cls, v):
        if isinstance(v, str):
            v = v.strip()
        return v


class _Organizacion(BaseModel):
    """
    Asignación organizacional. Régimen y región siempre obligatorios;
    None = "sin selección" (nunca 0, el 0 solo existe en la frontera del SP).
    """

    id_regimen: int = Field(ge=1)
    id_puesto: Optional[int] = Field(default=None, ge=1)
    id_centro_trabajo: Optional[int] = Field(default=None, ge=1)
    id_departamento: Optional[int] = Field(default=None, ge=1)
    id_region: int = Field(ge=1)
    id_gerencia: Optional[int] = Field(default=None, ge=1)
    nivel: Optional[str] = Field(default=None, max_length=50)
    clasificacion: Optional[str] = Field(default=None, max_length=100)
    foto_perfil_url: Optional[str] = Field(default=None, max_length=255)

    @field_validator(
        "id_puesto", "id_centro_trabajo", "id_departamento", "id_gerencia",
        "nivel", "clasificacion", "foto_perfil_url",
        mode="before",
    )
    @classmethod
    def _opcional(cls, v):
        return _vacio_a_none(v)


def _confirmar(password: Optional[str], confirmacion: Optional[str]) -> None:
    if password is not None and password != confirmacion:
        raise ValueError("Las contraseñas no coinciden.")


class RegistroIn(_DatosPersonales):
    """Auto-registro público (rol Participante)."""

    email: EmailStr
    password: str = Field(min_length=8)
    password_confirmation: str

    @model_validator(mode="after")
    def _confirmada(self):
        _confirmar(self.password, self.password_confirmation)
        return self


class UsuarioAdminIn(_DatosPersonales, _Organizacion):
    """Alta por administrador: rol explícito y organización completa."""

    ficha: str = Field(min_length=1, max_length=10)
    email: EmailStr
    password: str = Field(min_length=8)
    password_confirmation: str
    id_rol: Rol

    id_puesto: int = Field(ge=1)
    id_centro_trabajo: int = Field(ge=1)
    id_departamento: int = Field(ge=1)
    id_gerencia: int = Field(ge=1)

    @model_validator(mode="after")
    def _confirmada(self):
        _confirmar(self.password, self.password_confirmation)
        return self


class UsuarioAdminUpdateIn(_DatosPersonales, _Organizacion):
    email: EmailStr
    id_rol: Rol
    # None -> conservar la contraseña actual
    nueva_password: Optional[str] = Field(default=None, min_length=8)

    @field_validator("nueva_password", mode="before")
    @classmethod
    def _sin_password(cls, v):
        return _vacio_a_none(v)


class PerfilIn(_DatosPersonales, _Organizacion):
    """Auto-edición: sin email ni rol."""

    ficha: str = Field(min_length=1, max_length=10)


class CredencialesIn(BaseModel):
    password_actual: str = Field(min_length=1)
    nuevo_email: Optional[EmailStr] = None
    nueva_password: Optional[str] = Field(default=None, min_length=8)
    nueva_password_confirmation: Optional[str] = None

    @field_validator("nuevo_email", "nueva_password", "nueva_password_confirmation", mode="before")
    @classmethod
    def _opcional(cls, v):
        return _vacio_a_none(v)

    @model_validator(mode="after")
    def _confirmada(self):
        _confirmar(self.nueva_password, self.nueva_password_confirmation)
        return self


class EstatusIn(BaseModel):
    nuevo_estatus: Literal[0, 1]

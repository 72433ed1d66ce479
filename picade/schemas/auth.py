# picade/schemas/auth.py
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator


class LoginIn(BaseModel):
    # Email o Ficha: lo decide el motor de autenticación
    credencial: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1)
    recordar: bool = False

    @field_validator("credencial")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("El campo usuario o ficha es obligatorio.")
        return v


class LoginOut(BaseModel):
    ok: bool = True
    access_token: str
    token_type: str = "bearer"
    ruta: str
    user: dict


class ResetRequestIn(BaseModel):
    email: EmailStr


class ResetIn(BaseModel):
    token: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=8)
    password_confirmation: str

    @model_validator(mode="after")
    def _confirmada(self):
        if self.password != self.password_confirmation:
            raise ValueError("Las contraseñas no coinciden.")
        return self


# picade/models/sesiones.py
from sqlalchemy import Column, BigInteger, Integer, String, Boolean, DateTime, ForeignKey

from picade.db.base import Base


class SesionUsuario(Base):
    """Sesión del lado servidor; el JWT solo lleva su id (claim 'sid')."""

    __tablename__ = "Sesiones"

    id = Column("Id_Sesion", String(64), primary_key=True)
    usuario_id = Column(
        "Fk_Id_Usuario",
        BigInteger().with_variant(Integer, "sqlite"),
        ForeignKey("Usuarios.Id_Usuario", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    recordar = Column("Recordar", Boolean, nullable=False, default=False)
    # Copia de Usuarios.remember_token al momento del login
    remember_token = Column("Remember_Token", String(100), nullable=True)

    creada = Column("Fecha_Creacion", DateTime, nullable=False)
    expira = Column("Fecha_Expiracion", DateTime, nullable=False)
    revocada = Column("Fecha_Revocacion", DateTime, nullable=True)


class PasswordResetToken(Base):
    __tablename__ = "password_reset_tokens"

    # Un token vigente por correo
    email = Column(String(255), primary_key=True)
    token = Column(String(255), nullable=False)  # hash, nunca el token en claro
    created_at = Column(DateTime, nullable=False)

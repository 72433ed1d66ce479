# picade/models/usuarios.py
from sqlalchemy import Column, BigInteger, Integer, String, Boolean, Date, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship

from picade.db.base import Base
from picade.models.roles import Rol, RolType


class InfoPersonal(Base):
    __tablename__ = "Info_Personal"

    id = Column("Id_InfoPersonal", BigInteger().with_variant(Integer, "sqlite"), primary_key=True)

    nombre = Column("Nombre", String(100), nullable=False)
    apellido_paterno = Column("Apellido_Paterno", String(100), nullable=False)
    apellido_materno = Column("Apellido_Materno", String(100), nullable=False)
    fecha_nacimiento = Column("Fecha_Nacimiento", Date, nullable=True)
    fecha_ingreso = Column("Fecha_Ingreso", Date, nullable=True)

    # Catálogos organizacionales (NULL = sin asignar)
    id_regimen = Column("Fk_Id_CatRegimen", Integer, nullable=True)
    id_puesto = Column("Fk_Id_CatPuesto", Integer, nullable=True)
    id_centro_trabajo = Column("Fk_Id_CatCT", Integer, nullable=True)
    id_departamento = Column("Fk_Id_CatDep", Integer, nullable=True)
    id_region = Column("Fk_Id_CatRegion", Integer, nullable=True)
    id_gerencia = Column("Fk_Id_CatGeren", Integer, nullable=True)

    nivel = Column("Nivel", String(50), nullable=True)
    clasificacion = Column("Clasificacion", String(100), nullable=True)

    # Espejo de Usuarios.Activo (lo sincroniza el SP, nunca por separado)
    activo = Column("Activo", Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=False), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=False), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def nombre_completo(self) -> str:
        return f"{self.nombre} {self.apellido_paterno} {self.apellido_materno}"


class Usuario(Base):
    __tablename__ = "Usuarios"

    id = Column("Id_Usuario", BigInteger().with_variant(Integer, "sqlite"), primary_key=True)

    ficha = Column("Ficha", String(50), unique=True, nullable=False)
    email = Column("Email", String(255), unique=True, nullable=False)

    # Nunca sale de este módulo / del Credential Store
    password_hash = Column("Contraseña", String(255), nullable=False)

    foto_perfil_url = Column("Foto_Perfil_Url", String(255), nullable=True)

    info_personal_id = Column(
        "Fk_Id_InfoPersonal",
        BigInteger().with_variant(Integer, "sqlite"),
        ForeignKey("Info_Personal.Id_InfoPersonal", ondelete="CASCADE"),
        nullable=True,
    )
    info_personal = relationship("InfoPersonal", lazy="joined")

    rol = Column("Fk_Rol", RolType(), nullable=False, default=Rol.PARTICIPANTE)

    activo = Column("Activo", Boolean, nullable=False, default=True)

    # Se rota al restablecer contraseña -> mata sesiones "recordarme"
    remember_token = Column(String(100), nullable=True)

    @property
    def nombre_completo(self) -> str:
        if self.info_personal:
            return self.info_personal.nombre_completo
        return "Usuario sin nombre"

    def __repr__(self) -> str:
        return f"<Usuario id={self.id} ficha={self.ficha!r} rol={self.rol!r} activo={self.activo}>"

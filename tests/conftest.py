from __future__ import annotations

import os
import tempfile
from datetime import date

# Antes de importar picade: get_settings() lee el entorno una sola vez
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "secreto-de-pruebas"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="picade-logs-")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from picade.core.config import Settings, get_settings
from picade.core.deps import get_notificador, get_procedimientos
from picade.core.security import hash_password
from picade.db.base import Base
from picade.db.session import get_db
from picade.main import app
from picade.models import sesiones as _sesiones  # noqa: F401  (registra tablas)
from picade.models.roles import Rol
from picade.models.usuarios import InfoPersonal, Usuario

from .helpers.fakes import PASSWORD, FakeNotificador, FakeProcedimientos


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        future=True,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, future=True)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
def fake_sp(db):
    return FakeProcedimientos(db)


@pytest.fixture
def notificador():
    return FakeNotificador()


@pytest.fixture
def crear_usuario(db):
    """Inserta cuenta + expediente directo en tablas (sin pasar por SP)."""

    def _crear(
        ficha: str,
        email: str,
        password: str = PASSWORD,
        rol: Rol = Rol.PARTICIPANTE,
        activo: bool = True,
        password_hash: str | None = None,
        **info,
    ) -> Usuario:
        datos = {
            "nombre": "JUAN",
            "apellido_paterno": "PEREZ",
            "apellido_materno": "LOPEZ",
            "fecha_nacimiento": date(1990, 5, 17),
            "fecha_ingreso": date(2015, 1, 5),
            "id_regimen": 1,
            "id_region": 2,
        }
        datos.update(info)
        ip = InfoPersonal(activo=activo, **datos)
        db.add(ip)
        db.flush()
        u = Usuario(
            ficha=ficha,
            email=email,
            password_hash=password_hash if password_hash is not None else hash_password(password),
            info_personal_id=ip.id,
            rol=rol,
            activo=activo,
        )
        db.add(u)
        db.commit()
        return u

    return _crear


@pytest.fixture
def admin(crear_usuario):
    return crear_usuario("100001", "admin@pemex.com", rol=Rol.ADMINISTRADOR, nombre="ADA")


@pytest.fixture
def client(db, fake_sp, notificador):
    def _db():
        yield db

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_procedimientos] = lambda: fake_sp
    app.dependency_overrides[get_notificador] = lambda: notificador
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    """Hace login por HTTP y regresa headers Authorization listos."""

    def _login(credencial: str, password: str = PASSWORD, recordar: bool = False) -> dict:
        r = client.post("/auth/login", json={"credencial": credencial, "password": password, "recordar": recordar})
        assert r.status_code == 200, r.text
        return {"Authorization": f"Bearer {r.json()['access_token']}"}

    return _login

# picade/db/session.py
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from picade.core.config import get_settings


def make_engine(database_url: str):
    if database_url.startswith("sqlite"):
        # Solo para desarrollo/pruebas: SQLite no tiene procedimientos almacenados
        return create_engine(
            database_url,
            poolclass=NullPool,
            future=True,
            connect_args={"check_same_thread": False},
        )

    return create_engine(
        database_url,
        future=True,
        pool_pre_ping=True,   # revisa la conexión antes de usarla
        pool_recycle=3600,    # MySQL corta conexiones ociosas (wait_timeout)
    )


engine = make_engine(get_settings().database_url)

# Sesión
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


def get_db():
    """Dependency para FastAPI."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def test_db_connection() -> bool:
    """Para /db/ping."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False

# picade/core/security.py
import hmac
import secrets
from datetime import datetime, timedelta, timezone

from jose import jwt, JWTError
from passlib.context import CryptContext

from picade.core.config import get_settings

JWT_ALG = "HS256"

# bcrypt solo para verificar hashes $2y$ heredados; needs_update los migra a pbkdf2
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated=["bcrypt"])


def utcnow() -> datetime:
    """UTC naive: así se guarda en BD (MySQL DATETIME no guarda zona)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =========================
# Hashing (función de un solo sentido)
# =========================
def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def is_password_hash(value: str | None) -> bool:
    if not value:
        return False
    return pwd_context.identify(value) is not None


def verify_password(password: str, password_hash: str | None) -> bool:
    # Valor vacío o que no es hash reconocible -> nunca coincide
    if not is_password_hash(password_hash):
        return False
    return pwd_context.verify(password, password_hash)


def needs_rehash(password_hash: str) -> bool:
    return pwd_context.needs_update(password_hash)


def matches_legacy_plaintext(password: str, stored: str | None) -> bool:
    """Contraseñas heredadas guardadas en texto plano (comparación en tiempo constante)."""
    if not stored or is_password_hash(stored):
        return False
    return hmac.compare_digest(password.encode("utf-8"), stored.encode("utf-8"))


def new_random_token(nbytes: int = 32) -> str:
    return secrets.token_urlsafe(nbytes)


# =========================
# JWT (transporte de sesión)
# =========================
def create_token(payload: dict, minutes: int) -> str:
    to_encode = dict(payload)
    exp = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    to_encode.update({"exp": exp})
    return jwt.encode(to_encode, get_settings().jwt_secret, algorithm=JWT_ALG)


def create_access_token(data: dict, expires_minutes: int | None = None) -> str:
    mins = expires_minutes if expires_minutes is not None else get_settings().jwt_expires_min
    return create_token(data, minutes=mins)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, get_settings().jwt_secret, algorithms=[JWT_ALG])
    except JWTError as e:
        raise ValueError("Token inválido") from e

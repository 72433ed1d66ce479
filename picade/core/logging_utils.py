# picade/core/logging_utils.py
import logging
import os
from logging.handlers import RotatingFileHandler

from picade.core.config import Settings

AUDIT_LOGGER = "auditoria"

_FORMAT = "%(asctime)s,%(msecs)03d %(levelname)s %(name)s %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def ensure_logs_dir(base_path: str) -> str:
    """Regresa la ruta del directorio de logs, creándolo si hace falta."""
    logs_dir = os.path.normpath(base_path)
    os.makedirs(logs_dir, exist_ok=True)
    return logs_dir


def _file_handler(path: str, level: int, formatter: logging.Formatter) -> RotatingFileHandler:
    h = RotatingFileHandler(path, maxBytes=10 * 1024 * 1024, backupCount=10, encoding="utf-8")
    h.setLevel(level)
    h.setFormatter(formatter)
    return h


def configure_logging(settings: Settings) -> None:
    """
    Logger raíz -> api.log (rotación por tamaño) + consola.
    Logger 'auditoria' -> auditoria.log, sin propagar al raíz.
    """
    level = getattr(logging, settings.log_level, logging.INFO)
    logs_dir = ensure_logs_dir(settings.log_dir)
    formatter = logging.Formatter(_FORMAT, datefmt=_DATEFMT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    # Evita handlers duplicados cuando uvicorn recarga
    for h in list(root_logger.handlers):
        root_logger.removeHandler(h)

    root_logger.addHandler(_file_handler(os.path.join(logs_dir, "api.log"), level, formatter))

    console_h = logging.StreamHandler()
    console_h.setLevel(level)
    console_h.setFormatter(formatter)
    root_logger.addHandler(console_h)

    audit_logger = logging.getLogger(AUDIT_LOGGER)
    audit_logger.setLevel(logging.INFO)
    for h in list(audit_logger.handlers):
        audit_logger.removeHandler(h)
    audit_logger.addHandler(
        _file_handler(os.path.join(logs_dir, "auditoria.log"), logging.INFO, formatter)
    )
    audit_logger.propagate = False

    root_logger.info("Logging inicializado env=%s, logs -> %s", settings.env, logs_dir)


def audit_logger() -> logging.Logger:
    return logging.getLogger(AUDIT_LOGGER)

# picade/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse

from picade.core.config import get_settings
from picade.core.logging_utils import configure_logging
from picade.routes.auth import router as auth_router
from picade.routes.auth_password import router as auth_password_router
from picade.routes.catalogo import router as catalogo_router
from picade.routes.db import router as db_router
from picade.routes.perfil import router as perfil_router
from picade.routes.usuarios import router as usuarios_router
from picade.services.errores import (
    MENSAJE_GENERICO,
    ErrorAutenticacion,
    ErrorCicloVida,
    ErrorPicade,
    ErrorProcedimiento,
    ErrorValidacion,
    Severidad,
)

configure_logging(get_settings())
logger = logging.getLogger(__name__)

app = FastAPI(
    title="PICADE - Identidad y Acceso",
    version="1.0.0",
    default_response_class=JSONResponse,
)


# =========================
# 🔒 FUERZA UTF-8 EN JSON
# =========================
@app.middleware("http")
async def force_utf8_json(request: Request, call_next):
    response = await call_next(request)
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        response.headers["Content-Type"] = "application/json; charset=utf-8"
    return response


# =========================
# Errores de dominio -> JSON
# =========================
@app.exception_handler(ErrorPicade)
async def error_picade_handler(request: Request, exc: ErrorPicade):
    body = {"ok": False, "alerta": exc.severidad.value, "detail": exc.mensaje}
    if isinstance(exc, ErrorAutenticacion):
        body["tipo"] = exc.tipo
        body["campo"] = "credencial"
    if isinstance(exc, ErrorValidacion) and exc.campo:
        body["campo"] = exc.campo
    if isinstance(exc, ErrorCicloVida):
        body["codigo"] = exc.codigo
        # Valores originales para re-captura
        body["entrada"] = exc.entrada
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(ErrorProcedimiento)
async def error_procedimiento_handler(request: Request, exc: ErrorProcedimiento):
    # No debería escapar de los servicios; si pasa, nunca se muestra crudo
    logger.error("ErrorProcedimiento sin convertir en %s: %s", request.url.path, exc.raw)
    return JSONResponse(
        status_code=500,
        content={"ok": False, "alerta": Severidad.DANGER.value, "detail": MENSAJE_GENERICO},
    )


# Routers
app.include_router(db_router)
app.include_router(auth_router)
app.include_router(auth_password_router)
app.include_router(perfil_router)
app.include_router(usuarios_router)
app.include_router(catalogo_router)


# Root
@app.get("/", include_in_schema=False)
def root():
    return RedirectResponse(url="/docs")

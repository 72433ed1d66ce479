# picade/routes/db.py
from fastapi import APIRouter

from picade.db.session import engine, test_db_connection

router = APIRouter(prefix="/db", tags=["DB"])


@router.get("/ping")
def ping():
    # Los SP solo existen en MySQL; en sqlite el ping responde pero el ciclo de vida no
    return {"ok": test_db_connection(), "motor": engine.dialect.name}

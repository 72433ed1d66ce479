from __future__ import annotations

from dataclasses import replace

from picade.core.config import get_settings
from picade.main import app
from picade.models.roles import Rol
from picade.models.usuarios import Usuario

from .helpers import datos
from .helpers.fakes import PASSWORD


# =========================
# Auth
# =========================
def test_login_responde_token_y_dashboard_por_rol(client, admin):
    r = client.post("/auth/login", json={"credencial": "100001", "password": PASSWORD})

    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True
    assert body["token_type"] == "bearer"
    assert body["ruta"] == "/admin/dashboard"
    assert body["user"]["rol"] == "Administrador"
    assert r.headers["content-type"] == "application/json; charset=utf-8"


def test_login_fallido_es_generico_y_marca_el_campo(client, crear_usuario):
    crear_usuario("500001", "alguien@pemex.com")

    mala = client.post("/auth/login", json={"credencial": "500001", "password": "no-es"})
    nadie = client.post("/auth/login", json={"credencial": "no-existe@pemex.com", "password": "no-es"})

    assert mala.status_code == nadie.status_code == 401
    assert mala.json()["detail"] == nadie.json()["detail"] == "Credenciales incorrectas."
    assert mala.json()["campo"] == "credencial"


def test_login_cuenta_desactivada(client, crear_usuario):
    crear_usuario("500002", "off@pemex.com", activo=False)

    r = client.post("/auth/login", json={"credencial": "500002", "password": PASSWORD})

    assert r.status_code == 401
    assert r.json()["tipo"] == "cuenta_desactivada"


def test_login_con_sesion_previa_la_reemplaza(client, admin, login):
    viejo = login("100001")

    r = client.post("/auth/login", json={"credencial": "100001", "password": PASSWORD}, headers=viejo)
    nuevo = {"Authorization": f"Bearer {r.json()['access_token']}"}

    assert client.get("/perfil", headers=viejo).status_code == 401
    assert client.get("/perfil", headers=nuevo).status_code == 200


def test_logout_revoca_y_es_idempotente(client, admin, login):
    headers = login("100001")

    assert client.post("/auth/logout", headers=headers).json() == {"ok": True}
    assert client.post("/auth/logout", headers=headers).json() == {"ok": True}
    assert client.post("/auth/logout").json() == {"ok": True}
    assert client.get("/perfil", headers=headers).status_code == 401


def test_registro_publico_entrega_sesion(client, db):
    r = client.post("/auth/register", json=datos.registro_publico())

    assert r.status_code == 201
    body = r.json()
    assert body["ruta"] == "/dashboard"
    perfil = client.get("/perfil", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert perfil.status_code == 200
    assert perfil.json()["Ficha"] == "300001"


def test_registro_duplicado_responde_warning_con_entrada(client, crear_usuario):
    crear_usuario("300001", "primero@pemex.com")

    r = client.post("/auth/register", json=datos.registro_publico())

    assert r.status_code == 409
    body = r.json()
    assert body["ok"] is False
    assert body["alerta"] == "warning"
    assert body["codigo"] == "409-A"
    assert body["entrada"]["ficha"] == "300001"
    assert "password" not in body["entrada"]


def test_registro_con_passwords_distintas_es_422(client):
    r = client.post("/auth/register", json=datos.registro_publico(password_confirmation="OtraCosa123"))
    assert r.status_code == 422


# =========================
# Recuperación de contraseña
# =========================
def test_flujo_completo_de_reset(client, crear_usuario, notificador):
    crear_usuario("500003", "olvido@pemex.com")

    r = client.post("/auth/password/email", json={"email": "olvido@pemex.com"})
    assert r.status_code == 200
    assert r.json()["detail"] == "¡Enlace enviado! Revisa tu bandeja de entrada."
    _, token = notificador.enlaces[-1]

    r = client.post(
        "/auth/password/reset",
        json={"token": token, "email": "olvido@pemex.com", "password": "Recuperada1", "password_confirmation": "Recuperada1"},
    )
    assert r.status_code == 200
    assert len(notificador.restablecidas) == 1

    login = client.post("/auth/login", json={"credencial": "500003", "password": "Recuperada1"})
    assert login.status_code == 200


def test_reset_con_token_invalido(client, crear_usuario):
    crear_usuario("500004", "malo@pemex.com")

    r = client.post(
        "/auth/password/reset",
        json={"token": "inventado", "email": "malo@pemex.com", "password": "Recuperada1", "password_confirmation": "Recuperada1"},
    )

    assert r.status_code == 400
    assert r.json()["detail"] == "El token es inválido o ha expirado."


def test_solicitud_para_correo_desconocido(client):
    r = client.post("/auth/password/email", json={"email": "fantasma@pemex.com"})

    assert r.status_code == 404
    assert r.json()["detail"] == "No encontramos un usuario con ese correo."


def test_modo_anti_enumeracion_responde_igual(client, notificador):
    app.dependency_overrides[get_settings] = lambda: replace(get_settings(), reset_anti_enumeration=True)

    r = client.post("/auth/password/email", json={"email": "fantasma@pemex.com"})

    assert r.status_code == 200
    assert r.json()["detail"] == "¡Enlace enviado! Revisa tu bandeja de entrada."
    assert notificador.enlaces == []


# =========================
# Administración de usuarios
# =========================
def test_rutas_de_admin_exigen_sesion_y_rol(client, crear_usuario, login):
    crear_usuario("500005", "part@pemex.com")

    assert client.get("/usuarios").status_code == 401
    assert client.get("/usuarios", headers={"Authorization": "Bearer basura"}).status_code == 401
    assert client.get("/usuarios", headers=login("500005")).status_code == 403


def test_admin_crea_consulta_y_lista(client, admin, login):
    headers = login("100001")

    r = client.post("/usuarios", json=datos.alta_admin(ficha="500006"), headers=headers)
    assert r.status_code == 201
    nuevo_id = r.json()["usuario_id"]
    assert r.json()["detail"] == f"Colaborador registrado exitosamente. ID: #{nuevo_id}"

    ficha = client.get(f"/usuarios/{nuevo_id}", headers=headers).json()
    assert ficha["Id_Rol"] == int(Rol.INSTRUCTOR)
    assert ficha["Nivel"] == "N-31"

    listado = client.get("/usuarios", params={"roles": [3], "q": "500006"}, headers=headers).json()
    assert [i["id"] for i in listado["items"]] == [nuevo_id]


def test_alta_sin_organizacion_completa_es_422(client, admin, login):
    payload = datos.alta_admin()
    payload.pop("id_gerencia")

    r = client.post("/usuarios", json=payload, headers=login("100001"))

    assert r.status_code == 422


def test_consulta_de_usuario_inexistente(client, admin, login):
    r = client.get("/usuarios/987654", headers=login("100001"))
    assert r.status_code == 404


def test_edicion_sin_cambios_es_info_no_error(client, admin, crear_usuario, login):
    u = crear_usuario("500007", "quieto@pemex.com")

    r = client.put(f"/usuarios/{u.id}", json=datos.edicion_admin(u), headers=login("100001"))

    assert r.status_code == 200
    assert r.json()["alerta"] == "info"
    assert r.json()["accion"] == "SIN_CAMBIOS"


def test_estatus_y_baja(client, db, admin, crear_usuario, login):
    u = crear_usuario("500008", "temporal@pemex.com")
    uid = u.id
    headers = login("100001")

    r = client.patch(f"/usuarios/{uid}/estatus", json={"nuevo_estatus": 0}, headers=headers)
    assert r.status_code == 200
    assert r.json()["alerta"] == "success"

    r = client.patch(f"/usuarios/{uid}/estatus", json={"nuevo_estatus": 0}, headers=headers)
    assert r.json()["alerta"] == "info"

    assert client.patch(f"/usuarios/{uid}/estatus", json={"nuevo_estatus": 2}, headers=headers).status_code == 422

    r = client.delete(f"/usuarios/{uid}", headers=headers)
    assert r.status_code == 200
    assert db.get(Usuario, uid) is None


def test_admin_no_puede_desactivarse(client, admin, login):
    r = client.patch(f"/usuarios/{admin.id}/estatus", json={"nuevo_estatus": 0}, headers=login("100001"))

    assert r.status_code == 403
    assert r.json()["alerta"] == "danger"


def test_instructores_no_choca_con_ruta_por_id(client, admin, crear_usuario, login):
    crear_usuario("500009", "profe@pemex.com", rol=Rol.INSTRUCTOR)

    r = client.get("/usuarios/instructores", headers=login("100001"))

    assert r.status_code == 200
    assert [i["Ficha"] for i in r.json()] == ["500009"]


# =========================
# Perfil
# =========================
def test_cambio_de_password_propio_regenera_la_sesion(client, crear_usuario, login):
    crear_usuario("500010", "propio@pemex.com")
    headers = login("500010")

    r = client.put(
        "/perfil/credenciales",
        json={"password_actual": PASSWORD, "nueva_password": "CambiadaYa1", "nueva_password_confirmation": "CambiadaYa1"},
        headers=headers,
    )

    assert r.status_code == 200
    nuevo = {"Authorization": f"Bearer {r.json()['access_token']}"}
    assert client.get("/perfil", headers=headers).status_code == 401
    assert client.get("/perfil", headers=nuevo).status_code == 200


def test_credenciales_con_password_actual_incorrecta_marca_el_campo(client, crear_usuario, login):
    crear_usuario("500011", "campo@pemex.com")

    r = client.put(
        "/perfil/credenciales",
        json={"password_actual": "equivocada", "nuevo_email": "otro@pemex.com"},
        headers=login("500011"),
    )

    assert r.status_code == 400
    assert r.json()["campo"] == "password_actual"


# =========================
# Catálogos
# =========================
def test_cascada_de_catalogo(client, admin, login, fake_sp):
    headers = login("100001")

    ok = client.get("/api/catalogos/estados/1", headers=headers)
    assert ok.status_code == 200
    assert [e["Nombre"] for e in ok.json()] == ["CAMPECHE", "TABASCO"]

    assert client.get("/api/catalogos/estados/0", headers=headers).status_code == 400

    inactivo = client.get("/api/catalogos/estados/2", headers=headers)
    assert inactivo.status_code == 422
    assert inactivo.json()["detail"].startswith("ERROR DE INTEGRIDAD [409]")

    fake_sp.listar_hijos_catalogo = lambda *a: 1 / 0
    roto = client.get("/api/catalogos/gerencias/3", headers=headers)
    assert roto.status_code == 500
    assert roto.json()["detail"] == "Error interno al cargar gerencias."


def test_catalogo_nivel_desconocido_y_sin_sesion(client, admin, login):
    assert client.get("/api/catalogos/estados/1").status_code == 401
    assert client.get("/api/catalogos/planetas/1", headers=login("100001")).status_code == 422


def test_ping_de_base_de_datos(client):
    r = client.get("/db/ping")

    assert r.status_code == 200
    assert r.json() == {"ok": True, "motor": "sqlite"}

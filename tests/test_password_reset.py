from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from picade.core.security import hash_password, utcnow, verify_password
from picade.db.base import Base
from picade.models.roles import Rol
from picade.models.sesiones import PasswordResetToken
from picade.models.usuarios import InfoPersonal, Usuario
from picade.services import password_reset
from picade.services.auth_service import MotorAutenticacion
from picade.services.errores import CredencialesInvalidas, ReinicioLimitado, TokenInvalido, UsuarioNoEncontrado
from picade.services.password_reset import ProtocoloReinicio

from .helpers.fakes import PASSWORD, FakeNotificador

NUEVA = "NuevaClave2024"


@pytest.fixture
def protocolo(db, settings, notificador):
    return ProtocoloReinicio(db, notificador=notificador, settings=replace(settings, reset_throttle_seconds=0))


def test_solicitar_entrega_token_al_notificador_y_guarda_solo_el_hash(protocolo, db, notificador, crear_usuario):
    crear_usuario("200001", "Maria.Diaz@pemex.com")

    token = protocolo.solicitar("maria.diaz@pemex.com")

    assert notificador.enlaces == [("Maria.Diaz@pemex.com", token)]
    fila = db.get(PasswordResetToken, "maria.diaz@pemex.com")
    assert fila.token != token
    assert verify_password(token, fila.token)


def test_solicitar_correo_desconocido_es_distinguible(protocolo, notificador):
    with pytest.raises(UsuarioNoEncontrado):
        protocolo.solicitar("nadie@pemex.com")
    assert notificador.enlaces == []


def test_restablecer_cambia_hash_y_el_token_es_de_un_solo_uso(protocolo, db, notificador, crear_usuario):
    u = crear_usuario("200002", "pepe@pemex.com")
    token = protocolo.solicitar("pepe@pemex.com")

    protocolo.restablecer("pepe@pemex.com", token, NUEVA)

    assert verify_password(NUEVA, u.password_hash)
    assert not verify_password(PASSWORD, u.password_hash)
    assert db.get(PasswordResetToken, "pepe@pemex.com") is None
    assert notificador.restablecidas == [(u.id, "pepe@pemex.com")]

    with pytest.raises(TokenInvalido):
        protocolo.restablecer("pepe@pemex.com", token, "OtraClave2024")


def test_login_con_la_password_anterior_falla_despues_del_reset(protocolo, db, settings, crear_usuario):
    crear_usuario("200003", "rosa@pemex.com")
    token = protocolo.solicitar("rosa@pemex.com")
    protocolo.restablecer("rosa@pemex.com", token, NUEVA)

    motor = MotorAutenticacion(db, settings=settings)
    with pytest.raises(CredencialesInvalidas):
        motor.autenticar("200003", PASSWORD)
    assert motor.autenticar("200003", NUEVA).usuario_id


def test_reset_invalida_sesiones_recordarme(protocolo, db, settings, crear_usuario):
    u = crear_usuario("200004", "memo@pemex.com")
    motor = MotorAutenticacion(db, settings=settings)
    recordada = motor.autenticar("200004", PASSWORD, recordar=True)
    assert motor.resolver_sesion(recordada.sesion_id, u.id) is not None

    token = protocolo.solicitar("memo@pemex.com")
    protocolo.restablecer("memo@pemex.com", token, NUEVA)

    assert motor.resolver_sesion(recordada.sesion_id, u.id) is None


def test_token_de_otro_correo_no_sirve(protocolo, crear_usuario):
    crear_usuario("200005", "uno@pemex.com")
    crear_usuario("200006", "dos@pemex.com")
    token_uno = protocolo.solicitar("uno@pemex.com")
    protocolo.solicitar("dos@pemex.com")

    with pytest.raises(TokenInvalido):
        protocolo.restablecer("dos@pemex.com", token_uno, NUEVA)


def test_token_expirado_se_rechaza_y_se_borra(protocolo, db, settings, crear_usuario):
    crear_usuario("200007", "tarde@pemex.com")
    token = protocolo.solicitar("tarde@pemex.com")

    fila = db.get(PasswordResetToken, "tarde@pemex.com")
    fila.created_at = utcnow() - timedelta(minutes=settings.reset_token_ttl_min + 1)
    db.commit()

    with pytest.raises(TokenInvalido):
        protocolo.restablecer("tarde@pemex.com", token, NUEVA)
    assert db.get(PasswordResetToken, "tarde@pemex.com") is None


def test_nueva_solicitud_reemplaza_el_token_anterior(protocolo, db, crear_usuario):
    crear_usuario("200008", "doble@pemex.com")
    viejo = protocolo.solicitar("doble@pemex.com")
    nuevo = protocolo.solicitar("doble@pemex.com")

    assert db.query(PasswordResetToken).count() == 1
    with pytest.raises(TokenInvalido):
        protocolo.restablecer("doble@pemex.com", viejo, NUEVA)
    protocolo.restablecer("doble@pemex.com", nuevo, NUEVA)


def test_solicitudes_seguidas_se_limitan(db, settings, crear_usuario):
    crear_usuario("200009", "prisa@pemex.com")
    protocolo = ProtocoloReinicio(db, notificador=FakeNotificador(), settings=replace(settings, reset_throttle_seconds=60))

    protocolo.solicitar("prisa@pemex.com")
    with pytest.raises(ReinicioLimitado) as exc:
        protocolo.solicitar("prisa@pemex.com")
    assert exc.value.status_code == 429


def test_falla_del_aviso_no_revierte_el_reset(db, settings, crear_usuario):
    u = crear_usuario("200010", "smtp@pemex.com")
    protocolo = ProtocoloReinicio(db, notificador=FakeNotificador(fallar=True), settings=settings)
    token = protocolo.solicitar("smtp@pemex.com")

    protocolo.restablecer("smtp@pemex.com", token, NUEVA)

    assert verify_password(NUEVA, u.password_hash)


def test_el_aviso_se_puede_diferir(db, settings, crear_usuario):
    crear_usuario("200011", "cola@pemex.com")
    pendientes = []
    notificador = FakeNotificador()
    protocolo = ProtocoloReinicio(
        db,
        notificador=notificador,
        programar=lambda fn, *args: pendientes.append((fn, args)),
        settings=settings,
    )
    token = protocolo.solicitar("cola@pemex.com")

    protocolo.restablecer("cola@pemex.com", token, NUEVA)
    assert notificador.restablecidas == []

    for fn, args in pendientes:
        fn(*args)
    assert len(notificador.restablecidas) == 1


def test_dos_restablecimientos_simultaneos_solo_uno_consume_el_token(tmp_path, settings, monkeypatch):
    # Dos conexiones reales sobre el mismo archivo, como dos workers
    eng = create_engine(f"sqlite:///{tmp_path / 'reset.db'}", future=True)
    Base.metadata.create_all(eng)
    Sesion = sessionmaker(bind=eng, autoflush=False, future=True)
    sesion_a, sesion_b = Sesion(), Sesion()
    ajustes = replace(settings, reset_throttle_seconds=0)
    try:
        ip = InfoPersonal(
            activo=True, nombre="LUZ", apellido_paterno="SOTO", apellido_materno="RUIZ",
            fecha_nacimiento=date(1990, 5, 17), fecha_ingreso=date(2015, 1, 5), id_regimen=1, id_region=2,
        )
        sesion_a.add(ip)
        sesion_a.flush()
        u = Usuario(ficha="200012", email="carrera@pemex.com", password_hash=hash_password(PASSWORD),
                    info_personal_id=ip.id, rol=Rol.PARTICIPANTE, activo=True)
        sesion_a.add(u)
        sesion_a.commit()
        uid = u.id

        primero = ProtocoloReinicio(sesion_a, notificador=FakeNotificador(), settings=ajustes)
        segundo = ProtocoloReinicio(sesion_b, notificador=FakeNotificador(), settings=ajustes)
        token = primero.solicitar("carrera@pemex.com")

        original = password_reset.verify_password
        adelantado = []

        def verificar_y_adelantar(valor, hashed):
            # El otro worker termina mientras este aún valida el token
            if not adelantado:
                adelantado.append(True)
                segundo.restablecer("carrera@pemex.com", token, "SegundaClave1")
            return original(valor, hashed)

        monkeypatch.setattr(password_reset, "verify_password", verificar_y_adelantar)

        with pytest.raises(TokenInvalido):
            primero.restablecer("carrera@pemex.com", token, NUEVA)

        sesion_a.expire_all()
        final = sesion_a.get(Usuario, uid)
        assert verify_password("SegundaClave1", final.password_hash)
        assert not verify_password(NUEVA, final.password_hash)
        assert sesion_a.get(PasswordResetToken, "carrera@pemex.com") is None
    finally:
        sesion_a.close()
        sesion_b.close()
        eng.dispose()

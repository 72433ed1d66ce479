import getpass

from picade.db.session import SessionLocal
from picade.services.errores import ErrorPicade
from picade.services.password_reset import ProtocoloReinicio


def main():
    # Mismo protocolo que /auth/password/*: token de un solo uso + cambio de hash
    email = input("Email a resetear: ").strip().lower()

    db = SessionLocal()
    try:
        protocolo = ProtocoloReinicio(db)
        try:
            token = protocolo.solicitar(email)
        except ErrorPicade as e:
            print(e.mensaje)
            return

        new_pw = getpass.getpass("Nueva contraseña: ")
        confirm = getpass.getpass("Confirmar contraseña: ")
        if new_pw != confirm:
            print("Las contraseñas no coinciden.")
            return
        if len(new_pw) < 8:
            print("La contraseña debe tener al menos 8 caracteres.")
            return

        try:
            protocolo.restablecer(email, token, new_pw)
        except ErrorPicade as e:
            print(e.mensaje)
            return
    finally:
        db.close()

    print("OK: contraseña actualizada para", email)


if __name__ == "__main__":
    main()

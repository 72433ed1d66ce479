import getpass

from sqlalchemy import func

from picade.core.security import hash_password
from picade.db.session import SessionLocal
from picade.models.roles import Rol
from picade.models.usuarios import InfoPersonal, Usuario


def main():
    # Primer administrador: SP_RegistrarUsuarioPorAdmin exige un admin ejecutor,
    # así que el arranque se hace directo sobre las tablas.
    ficha = input("Ficha admin: ").strip()
    email = input("Email admin: ").strip()
    nombre = input("Nombre: ").strip().upper()
    apellido_paterno = input("Apellido paterno: ").strip().upper()
    apellido_materno = input("Apellido materno: ").strip().upper()
    password = getpass.getpass("Password admin: ")

    if len(password) < 8:
        print("La contraseña debe tener al menos 8 caracteres.")
        return

    db = SessionLocal()
    try:
        # Si ya existe, no lo duplica
        exists = (
            db.query(Usuario)
            .filter((Usuario.ficha == ficha) | (func.lower(Usuario.email) == email.lower()))
            .first()
        )
        if exists:
            print("Esa ficha o email ya existe. Mejor usa reset_password.py para cambiar password.")
            return

        info = InfoPersonal(
            nombre=nombre,
            apellido_paterno=apellido_paterno,
            apellido_materno=apellido_materno,
            activo=True,
        )
        db.add(info)
        db.flush()

        db.add(
            Usuario(
                ficha=ficha,
                email=email,
                password_hash=hash_password(password),
                info_personal_id=info.id,
                rol=Rol.ADMINISTRADOR,
                activo=True,
            )
        )
        db.commit()
    finally:
        db.close()

    print("OK: admin creado:", email)


if __name__ == "__main__":
    main()

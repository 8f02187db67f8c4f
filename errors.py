"""Exceptions raised by the credential and patient stores."""


class ClinicError(Exception):
    """Base class. ``message`` is safe to show to the user."""

    message = "Error en la operación"

    def __init__(self, message=None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(ClinicError):
    message = "Faltan campos obligatorios"


class ImportRejected(ValidationError):
    def __init__(self, bad_rows, message=None):
        self.bad_rows = list(bad_rows)
        rows = ", ".join(str(n) for n in self.bad_rows)
        super().__init__(
            message or f"Importación cancelada: filas inválidas ({rows})"
        )


class DuplicateUser(ClinicError):
    message = "El nombre de usuario ya existe"


class InvalidAccessCode(ClinicError):
    message = "Código de acceso inválido"


class InvalidRole(ClinicError):
    message = "Rol inválido"


class InvalidCredentials(ClinicError):
    # UserNotFound and BadPassword render the same text on purpose
    message = "Usuario o contraseña incorrectos"


class UserNotFound(InvalidCredentials):
    pass


class BadPassword(InvalidCredentials):
    pass


class NotFound(ClinicError):
    message = "Registro no encontrado"


class StoreUnavailable(ClinicError):
    message = "No se pudo completar la operación. Intente más tarde."

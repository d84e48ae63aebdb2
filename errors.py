from typing import Any, Optional


class ServiceError(Exception):
    status_code = 500
    message = "Error interno"

    def __init__(self, message: Optional[str] = None, data: Optional[dict] = None, detail: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.data = data
        self.detail = detail

    def to_body(self, expose_detail: bool = True) -> dict[str, Any]:
        body: dict[str, Any] = {"success": False, "message": self.message}
        if self.data is not None:
            body["data"] = self.data
        if expose_detail and self.detail:
            body["error"] = self.detail
        return body


class ValidationError(ServiceError):
    status_code = 400
    message = "Datos inválidos"


class NotFoundError(ServiceError):
    status_code = 404
    message = "Registro no encontrado"


class ConflictError(ServiceError):
    status_code = 409
    message = "Ya existe un registro con este título"

    def __init__(self, existing_id: int, message: Optional[str] = None):
        super().__init__(message, data={"id": existing_id})
        self.existing_id = existing_id


class StorageError(ServiceError):
    status_code = 500
    message = "Error al acceder a la base de datos"


class MailError(ServiceError):
    status_code = 500
    message = "Error al enviar el correo"

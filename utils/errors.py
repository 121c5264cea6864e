"""
Error taxonomy for the parking core.

Every failure carries a stable symbolic ``kind`` so callers can branch on it
without parsing the (Spanish, user-facing) message, plus the HTTP status the
API layer answers with.

Usage:
    from utils.errors import Conflict

    raise Conflict('El parqueo ya está reservado en ese rango de fechas')
"""


class ParkingError(Exception):
    """Base class for all domain errors."""

    kind = 'error'
    status = 500
    default_message = 'Error interno'

    def __init__(self, message: str | None = None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Serializable form used by the API error envelope."""
        payload = {'kind': self.kind, 'error': self.message}
        if self.details:
            payload.update(self.details)
        return payload


class NotFound(ParkingError):
    kind = 'not_found'
    status = 404
    default_message = 'Recurso no encontrado'


class InvalidInput(ParkingError):
    kind = 'invalid_input'
    status = 400
    default_message = 'Datos inválidos'


class InvalidRange(InvalidInput):
    kind = 'invalid_range'
    default_message = 'Rango de fechas inválido (from < to)'


class Inactive(ParkingError):
    kind = 'inactive'
    status = 409
    default_message = 'Parqueo no disponible'


class Conflict(ParkingError):
    kind = 'conflict'
    status = 409
    default_message = 'El parqueo ya está reservado en ese rango de fechas'


class InvalidState(ParkingError):
    kind = 'invalid_state'
    status = 409
    default_message = 'Operación no válida para el estado actual'


class OutOfWindow(InvalidState):
    kind = 'out_of_window'
    default_message = 'Fuera de la ventana de reserva'


class InvalidCode(ParkingError):
    kind = 'invalid_code'
    status = 403
    default_message = 'Código inválido'


class Expired(ParkingError):
    kind = 'expired'
    status = 410
    default_message = 'El código ha expirado'


class DeliveryFailure(ParkingError):
    kind = 'delivery_failure'
    status = 502
    default_message = 'No se pudo enviar la notificación'


class StoreFailure(ParkingError):
    kind = 'store_failure'
    status = 503
    default_message = 'Error de base de datos'

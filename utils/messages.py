"""
Centralized Spanish API messages.
All user-facing text in Spanish for consistency.
"""

MESSAGES = {
    # Slots
    'slot_created': 'Parqueo creado exitosamente',
    'slot_activated': 'Parqueo activado exitosamente',
    'slot_deactivated': 'Parqueo desactivado exitosamente',
    'slot_not_found': 'Parqueo no encontrado',
    'slot_unavailable': 'Parqueo no disponible',
    'slot_name_required': 'El nombre es obligatorio',
    'occupancy_updated': 'Parqueos actualizados exitosamente',
    'occupancy_partial': 'Algunos parqueos no se pudieron actualizar',
    'occupancy_batch_required': 'Se espera un arreglo de parqueos para actualizar',
    'occupancy_item_invalid': 'Cada parqueo debe tener un id y un estado booleano',

    # Waitlist
    'notify_sent': 'Parqueo disponible, notificación enviada.',
    'notify_subscribed': 'Suscripción registrada. Te avisaremos cuando esté disponible',

    # Reservations
    'reservation_created': "Reserva creada en estado 'pending'. Se envió un código de confirmación al correo.",
    'reservation_confirmed': 'Reserva confirmada',
    'reservation_cancelled': 'Reserva cancelada',
    'reservation_checked_in': 'Check-in registrado',
    'reservation_not_found': 'Reserva no encontrada',
    'reservation_conflict': 'El parqueo ya está reservado en ese rango de fechas',
    'reservation_fields_required': 'Faltan datos obligatorios (slot_id, email, from, to)',
    'reservation_not_pending': 'La reserva no está pendiente. Estado actual: {status}',
    'reservation_terminal': 'La reserva ya finalizó. Estado actual: {status}',
    'reservation_not_confirmed': 'La reserva no está confirmada. Estado actual: {status}',
    'code_required': 'Código requerido',
    'code_invalid': 'Código inválido',
    'code_expired': 'El código ha expirado',
    'code_delivery_failed': 'No se pudo enviar el código de confirmación',
    'out_of_window': 'Fuera de la ventana de reserva',
    'invalid_range': 'Rango de fechas inválido (from < to)',

    # Generic
    'data_required': 'Datos requeridos',
    'not_found': 'Recurso no encontrado',
    'method_not_allowed': 'Método no permitido',
    'internal_error': 'Error interno del servidor',
}


def get_message(key: str, **kwargs) -> str:
    """
    Get message with optional formatting.

    Args:
        key: Message key
        **kwargs: Format parameters

    Returns:
        Formatted message or key if not found
    """
    message = MESSAGES.get(key, key)
    if kwargs:
        return message.format(**kwargs)
    return message

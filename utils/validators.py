"""
Input validation helper functions.
Provides validation for common input types.
"""

import re
from datetime import datetime

from utils.datetime_helpers import to_utc
from utils.errors import InvalidInput

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')


def normalize_email(email) -> str:
    """
    Trim and lowercase an email address.

    Args:
        email: Raw value from the request

    Returns:
        Normalized email ('' when missing)
    """
    return str(email or '').strip().lower()


def validate_email(email: str) -> bool:
    """
    Validate email format.

    Args:
        email: Email address to validate

    Returns:
        True if valid email format
    """
    if not email:
        return False

    return bool(EMAIL_PATTERN.match(email))


def require_email(email) -> str:
    """
    Normalize an email and raise InvalidInput when it is missing or malformed.

    Returns:
        Normalized email
    """
    email_norm = normalize_email(email)
    if not email_norm:
        raise InvalidInput('Es necesario el correo electrónico')
    if not validate_email(email_norm):
        raise InvalidInput('Email inválido')
    return email_norm


def parse_datetime(value, field: str, assume_tz=None) -> datetime:
    """
    Parse an ISO-8601 timestamp from API input into aware UTC.

    Args:
        value: ISO string (or datetime)
        field: Field name for the error message
        assume_tz: Timezone for naive values

    Returns:
        datetime: Aware UTC datetime

    Raises:
        InvalidInput: If missing or unparseable
    """
    if isinstance(value, datetime):
        return to_utc(value, assume_tz)
    if not value or not isinstance(value, str):
        raise InvalidInput(f'El campo {field} es obligatorio')

    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise InvalidInput(f'Fecha inválida en {field}: {value}')
    return to_utc(parsed, assume_tz)


def parse_int(value, default: int) -> int:
    """Parse an integer query parameter, falling back to default when missing or unparseable."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_positive_int(value, default: int) -> int:
    """
    Parse a positive integer query parameter, falling back to default.

    Args:
        value: Raw value
        default: Value when missing, unparseable or not positive

    Returns:
        int
    """
    try:
        n = int(value)
    except (TypeError, ValueError):
        return default
    return n if n > 0 else default


def clamp_days(days: int, minimum: int = 1, maximum: int = 365) -> int:
    """Clamp a reporting window to [minimum, maximum] days."""
    return max(minimum, min(days, maximum))

"""
Utility helper functions.
Common helper functions used throughout the application.
"""

import secrets

# Unambiguous alphabet: no 0/O, 1/I/L
CODE_ALPHABET = 'ABCDEFGHJKMNPQRSTUVWXYZ23456789'


def generate_unique_code(length: int = 6, alphabet: str = CODE_ALPHABET) -> str:
    """
    Generate a random confirmation code.

    ``secrets.choice`` draws each character uniformly (rejection sampling
    inside ``randbelow``), so no symbol is favoured.

    Args:
        length: Number of characters
        alphabet: Characters to draw from

    Returns:
        Code string
    """
    return ''.join(secrets.choice(alphabet) for _ in range(length))


def truncate_text(text: str, max_length: int = 100, suffix: str = '...') -> str:
    """
    Truncate text to maximum length.

    Args:
        text: Text to truncate
        max_length: Maximum length
        suffix: Suffix to add if truncated

    Returns:
        Truncated text
    """
    if not text or len(text) <= max_length:
        return text or ''

    return text[:max_length - len(suffix)] + suffix

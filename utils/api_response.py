"""
Standardized API response helpers.

Provides consistent JSON response format across all API endpoints:

    Success:  {"success": true, "data": {...}, "message": "..."}
    Error:    {"success": false, "error": "Spanish error message", "kind": "conflict"}

Usage:
    from utils.api_response import api_success, api_error

    return api_success(data={'id': 1}, message='Creado exitosamente')
    return api_error('Datos requeridos', status=400, kind='invalid_input')
"""

from flask import jsonify
from typing import Any

from utils.errors import ParkingError


def api_success(
    data: dict | list | None = None,
    message: str | None = None,
    status: int = 200,
    **extra_fields: Any
) -> tuple:
    """
    Build a standardized success JSON response.

    Args:
        data: Optional payload to include as 'data' key.
        message: Optional success message (Spanish).
        status: HTTP status code (default 200).
        **extra_fields: Additional top-level fields to include in the response.

    Returns:
        Tuple of (Response, status_code)
    """
    response = {'success': True}

    if data is not None:
        response['data'] = data

    if message:
        response['message'] = message

    if extra_fields:
        response.update(extra_fields)

    return jsonify(response), status


def api_error(error: str, status: int = 400, **extra_fields: Any) -> tuple:
    """
    Build a standardized error JSON response.

    Args:
        error: Error message (Spanish).
        status: HTTP status code (default 400).
        **extra_fields: Additional top-level fields (e.g., kind, conflicts).

    Returns:
        Tuple of (Response, status_code)
    """
    response = {'success': False, 'error': error}

    if extra_fields:
        response.update(extra_fields)

    return jsonify(response), status


def api_parking_error(exc: ParkingError) -> tuple:
    """Build the error envelope for a domain error."""
    return api_error(exc.message, status=exc.status, **{
        k: v for k, v in exc.to_dict().items() if k != 'error'
    })

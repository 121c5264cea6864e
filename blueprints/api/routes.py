"""
API routes for service-level JSON endpoints.
"""

from flask import current_app, Blueprint

from utils.api_response import api_success

api_bp = Blueprint('api', __name__)


@api_bp.route('/health')
def health_check():
    """
    Health check endpoint.

    Returns:
        JSON with status and version
    """
    return api_success(data={
        'status': 'ok',
        'version': current_app.config.get('APP_VERSION', '1.0.0'),
        'app': current_app.config.get('APP_NAME', 'ParkWatch')
    })

"""
Flask application configuration classes.
Provides configuration for development, production, and testing environments.
"""

import os


def _env_bool(name: str, default: str = 'false') -> bool:
    return os.environ.get(name, default).lower() in ('true', '1', 't', 'yes')


class Config:
    """Base configuration class with common settings."""

    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # Database configuration
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or 'instance/parkwatch.db'
    DATABASE_TIMEOUT = float(os.environ.get('DATABASE_TIMEOUT', 10))

    # Timezone used for naive API timestamps and report buckets
    TIMEZONE = os.environ.get('TIMEZONE', 'America/Guatemala')

    # Reservation engine
    RESERVATION_CODE_VALIDITY_MINUTES = int(os.environ.get('RESERVATION_CODE_VALIDITY_MINUTES', 10))
    RESERVATION_CODE_LENGTH = 6
    COMPLETION_TOLERANCE_MINUTES = int(os.environ.get('COMPLETION_TOLERANCE_MINUTES', 30))
    CASCADE_LOOKAHEAD_MINUTES = int(os.environ.get('CASCADE_LOOKAHEAD_MINUTES', 10))

    # Waitlist fan-out
    WAITLIST_MAX_WORKERS = int(os.environ.get('WAITLIST_MAX_WORKERS', 8))
    WAITLIST_CLAIM_TIMEOUT_MINUTES = int(os.environ.get('WAITLIST_CLAIM_TIMEOUT_MINUTES', 5))

    # Mail (Flask-Mail)
    MAIL_SERVER = os.environ.get('MAIL_SERVER', 'smtp.gmail.com')
    MAIL_PORT = int(os.environ.get('MAIL_PORT', 587))
    MAIL_USE_TLS = _env_bool('MAIL_USE_TLS', 'true')
    MAIL_USE_SSL = _env_bool('MAIL_USE_SSL', 'false')
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')
    MAIL_DEFAULT_SENDER = os.environ.get('MAIL_DEFAULT_SENDER') or (
        f"Notificaciones <{os.environ['MAIL_USERNAME']}>"
        if os.environ.get('MAIL_USERNAME') else 'ParkWatch <no-reply@parkwatch.local>'
    )

    # Link placed in outgoing notifications (optional)
    FRONTEND_URL = os.environ.get('FRONTEND_URL', '')

    # Live events (server-sent events)
    EVENT_STREAM_HEARTBEAT_SECONDS = int(os.environ.get('EVENT_STREAM_HEARTBEAT_SECONDS', 15))

    # Application settings
    APP_NAME = 'ParkWatch'
    APP_VERSION = '1.0.0'


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    TESTING = False
    MAIL_SUPPRESS_SEND = _env_bool('MAIL_SUPPRESS_SEND', 'false')


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    TESTING = False
    MAIL_SUPPRESS_SEND = False

    SECRET_KEY = os.environ.get('SECRET_KEY') or Config.SECRET_KEY
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or Config.DATABASE_PATH

    @classmethod
    def validate(cls) -> None:
        """Validate that required production environment variables are set."""
        secret_key = os.environ.get('SECRET_KEY')
        if not secret_key:
            raise ValueError("SECRET_KEY environment variable must be set in production")
        if len(secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters in production")
        if not os.environ.get('DATABASE_PATH'):
            raise ValueError("DATABASE_PATH environment variable must be set in production")
        if not os.environ.get('MAIL_USERNAME') or not os.environ.get('MAIL_PASSWORD'):
            raise ValueError("MAIL_USERNAME and MAIL_PASSWORD must be set in production")


class TestConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    DEBUG = True
    MAIL_SUPPRESS_SEND = True
    DATABASE_PATH = os.environ.get('DATABASE_PATH', ':memory:')
    DATABASE_TIMEOUT = 10.0
    SECRET_KEY = 'test-secret-key'
    TIMEZONE = 'UTC'
    WAITLIST_MAX_WORKERS = 4
    EVENT_STREAM_HEARTBEAT_SECONDS = 1


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'test': TestConfig,
    'default': DevelopmentConfig
}

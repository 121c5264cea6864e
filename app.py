"""
ParkWatch - Parking Slot Reservations and Occupancy
Flask application factory and initialization
"""

import os
import click
import logging
from flask import Flask, g
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Import configuration
from config import config

# Import extensions
from extensions import mail

# Import database functions
from database import close_db, init_db

from utils.api_response import api_error, api_parking_error
from utils.errors import ParkingError
from utils.messages import get_message


def create_app(config_name=None):
    """
    Application factory for Flask app.

    Args:
        config_name: Configuration name ('development', 'production', 'test')

    Returns:
        Flask application instance
    """
    # Determine config
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    # Create Flask app
    app = Flask(__name__)

    # Load configuration
    app.config.from_object(config[config_name])

    # Initialize extensions
    initialize_extensions(app)

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Register CLI commands
    register_cli_commands(app)

    # Register teardown handlers
    register_teardown_handlers(app)

    # Configure logging
    configure_logging(app)

    return app


def initialize_extensions(app):
    """Initialize Flask extensions and the parking services."""
    # Initialize Flask-Mail
    mail.init_app(app)

    from blueprints.parking.services import init_app as init_parking_services
    init_parking_services(app)


def register_blueprints(app):
    """Register Flask blueprints."""
    # Import blueprints
    from blueprints.parking import parking_bp
    from blueprints.api.routes import api_bp

    # Register blueprints
    app.register_blueprint(parking_bp, url_prefix='/api/parking')
    app.register_blueprint(api_bp, url_prefix='/api')


def register_error_handlers(app):
    """Register JSON error handlers."""

    @app.errorhandler(ParkingError)
    def parking_error(error):
        """Domain errors carry their own kind and status."""
        if error.status >= 500:
            app.logger.error('%s: %s', error.kind, error.message)
        return api_parking_error(error)

    @app.errorhandler(404)
    def not_found_error(error):
        """Handle 404 errors."""
        return api_error(get_message('not_found'), status=404, kind='not_found')

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        """Handle 405 errors."""
        return api_error(get_message('method_not_allowed'), status=405, kind='method_not_allowed')

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 errors."""
        # Rollback database on error
        db = g.get('db')
        if db and db.in_transaction:
            db.rollback()
        return api_error(get_message('internal_error'), status=500, kind='internal_error')


def register_cli_commands(app):
    """Register Flask CLI commands."""

    @app.cli.command('init-db')
    def init_db_command():
        """Drop and recreate the database schema."""
        click.echo('Initializing database...')
        with app.app_context():
            init_db()
        click.echo('Database initialized successfully!')

    @app.cli.command('create-slot')
    @click.argument('name')
    def create_slot_command(name):
        """Create a new parking slot."""
        from blueprints.parking.services import get_services

        with app.app_context():
            try:
                slot = get_services().admin.create_slot(name)
                click.echo(f'Slot created successfully! ID: {slot["id"]}')
            except ParkingError as e:
                click.echo(f'Error creating slot: {e.message}', err=True)

    @app.cli.command('expire-reservations')
    def expire_reservations_command():
        """Expire pending reservations with lapsed codes and unused active ones."""
        from blueprints.parking.services import get_services

        with app.app_context():
            count = get_services().lifecycle.expire_stale()
        click.echo(f'{count} reservations expired')

    @app.cli.command('retry-waitlist')
    def retry_waitlist_command():
        """Re-run the waitlist cascade for free slots with pending subscribers."""
        from blueprints.parking.services import get_services

        with app.app_context():
            results = get_services().cascade.retry_pending()
        for result in results:
            click.echo(
                f"Slot {result['slot_id']}: {result['notified']} notified, "
                f"{result['failed']} failed"
            )
        click.echo(f'{len(results)} slots processed')


def register_teardown_handlers(app):
    """Register teardown handlers."""

    @app.teardown_appcontext
    def teardown_db(error):
        """Close database connection at end of request."""
        close_db(error)


def configure_logging(app):
    """Configure application logging."""
    if not app.debug and not app.testing:
        # Production logging
        if not os.path.exists('logs'):
            os.mkdir('logs')

        file_handler = logging.FileHandler('logs/parkwatch.log')
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)

        # Service modules log under their own names
        root_logger = logging.getLogger()
        root_logger.addHandler(file_handler)
        root_logger.setLevel(logging.INFO)

        app.logger.setLevel(logging.INFO)
        app.logger.info('ParkWatch startup')
    else:
        # Development logging
        app.logger.setLevel(logging.DEBUG)


# Create application instance for development server
if __name__ == '__main__':
    app = create_app()
    # host='0.0.0.0' allows access from other devices on the network
    app.run(host='0.0.0.0', debug=True, threaded=True)

"""Flask application factory for the Gold Scheme Redemption Calculator."""
import logging
import os
from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix


logger = logging.getLogger('app')


def create_app(config: dict | None = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        config: Optional configuration dictionary to override defaults.
            SCHEME_CONSTANTS may be given to bypass env-based constants.

    Returns:
        Configured Flask application instance.
    """
    app = Flask(__name__)

    # Trust X-Forwarded-For from reverse proxy
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    from app.services.config import (
        get_data_dir,
        get_default_premature_cap_percentage,
        get_scheme_constants,
    )

    # Default configuration
    app.config.update(
        SECRET_KEY=os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production'),
        JSON_SORT_KEYS=False,
        DATA_DIR=get_data_dir(),
        DEFAULT_PREMATURE_CAP_PERCENTAGE=get_default_premature_cap_percentage(),
    )

    # Override with provided config
    if config:
        app.config.update(config)

    # Fixed per deployment; raises ValueError on malformed env values
    if app.config.get('SCHEME_CONSTANTS') is None:
        app.config['SCHEME_CONSTANTS'] = get_scheme_constants()
    logger.info(f"Scheme constants: {app.config['SCHEME_CONSTANTS'].to_dict()}")

    # Initialize database
    from app import db
    db.init_app(app)

    # Register CLI commands
    from app import cli
    cli.register_cli(app)

    # Register blueprints
    from app.routes.health import health_bp
    from app.routes.api import api_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(api_bp, url_prefix='/api/v1')

    return app

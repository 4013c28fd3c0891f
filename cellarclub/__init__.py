"""
CellarClub wine-club console
Flask application factory
"""
import os
import re
import logging
from flask import Flask
from flask_cors import CORS

from .extensions import db, migrate
from .config import get_config, validate_config
from .crm.factory import EXTENSION_KEY, ProviderFactory
from .utils.errors import register_error_handlers
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def create_app(config_name: str = None, provider_factory: ProviderFactory = None) -> Flask:
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration environment (development, production, testing)
        provider_factory: CRM provider factory; defaults to the real
            Commerce7/Shopify providers built from app config

    Returns:
        Configured Flask application
    """
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    # Setup logging before anything else
    setup_logging()

    validate_config(config_name)

    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    cors_origins = [
        'http://localhost:5173',
        'http://127.0.0.1:5173',
        'https://admin.shopify.com',
        re.compile(r'https://.*\.myshopify\.com'),
        re.compile(r'https://.*\.commerce7\.com'),
    ]
    CORS(
        app,
        origins=cors_origins,
        supports_credentials=True,
        allow_headers=['Content-Type', 'Authorization', 'X-Tenant-ID', 'X-Shop-Domain', 'X-Session-ID'],
    )

    app.extensions[EXTENSION_KEY] = provider_factory or ProviderFactory.from_config(app.config)

    register_blueprints(app)
    register_error_handlers(app)

    @app.route('/health')
    def health_check():
        return {'status': 'healthy', 'service': 'cellarclub'}

    logger.info(f'CellarClub app created ({config_name})')
    return app


def register_blueprints(app: Flask) -> None:
    """Register all API and webhook blueprints."""
    from .api.club import club_bp
    from .api.enrollment import enrollment_bp
    from .api.webhooks import webhook_admin_bp
    from .webhooks.lifecycle import webhooks_bp

    app.register_blueprint(club_bp)
    app.register_blueprint(enrollment_bp)
    app.register_blueprint(webhook_admin_bp)
    app.register_blueprint(webhooks_bp)

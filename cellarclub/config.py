"""
Configuration management for the CellarClub console.
"""
import os
from dotenv import load_dotenv

load_dotenv()


class BaseConfig:
    """Base configuration."""
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Commerce7 app credentials (shared by every winery tenant)
    COMMERCE7_API_URL = os.getenv('COMMERCE7_API_URL', 'https://api.commerce7.com/v1')
    COMMERCE7_APP_NAME = os.getenv('COMMERCE7_APP_NAME', '')
    COMMERCE7_KEY = os.getenv('COMMERCE7_KEY', '')
    COMMERCE7_WEBHOOK_SECRET = os.getenv('COMMERCE7_WEBHOOK_SECRET', '')

    # Basic auth credentials Commerce7 sends with install/uninstall callbacks
    COMMERCE7_USER = os.getenv('COMMERCE7_USER', '')
    COMMERCE7_PASSWORD = os.getenv('COMMERCE7_PASSWORD', '')

    # Shopify defaults (access tokens are stored per tenant)
    SHOPIFY_API_VERSION = os.getenv('SHOPIFY_API_VERSION', '2025-01')
    SHOPIFY_API_SECRET = os.getenv('SHOPIFY_API_SECRET', '')

    # Seconds before an outbound CRM call is abandoned
    CRM_TIMEOUT_SECONDS = float(os.getenv('CRM_TIMEOUT_SECONDS', '30'))


class DevelopmentConfig(BaseConfig):
    """Development configuration."""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URL',
        'sqlite:///cellarclub_dev.db'  # SQLite fallback for local dev
    )


class ProductionConfig(BaseConfig):
    """Production configuration."""
    DEBUG = False

    _db_url = os.getenv('DATABASE_URL', '')
    if _db_url.startswith('postgres://'):
        # SQLAlchemy requires postgresql:// not postgres://
        _db_url = _db_url.replace('postgres://', 'postgresql://', 1)

    SQLALCHEMY_DATABASE_URI = _db_url

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 5,
        'pool_recycle': 300,
        'pool_pre_ping': True,
    }

    _secret_key = os.getenv('SECRET_KEY', '')

    @classmethod
    def validate_secret_key(cls) -> str:
        """
        Validate SECRET_KEY in production environment.

        Raises:
            RuntimeError: If SECRET_KEY is missing or too weak
        """
        if not cls._secret_key:
            raise RuntimeError(
                "SECRET_KEY environment variable is not set. "
                "Production deployments must configure a random SECRET_KEY."
            )

        if len(cls._secret_key) < 32:
            raise RuntimeError("SECRET_KEY is too short (minimum 32 characters required)")

        return cls._secret_key

    SECRET_KEY = _secret_key

    @classmethod
    def validate_crm_credentials(cls) -> None:
        """Commerce7 tenants cannot be served without app credentials."""
        if not cls.COMMERCE7_APP_NAME or not cls.COMMERCE7_KEY:
            raise RuntimeError("COMMERCE7_APP_NAME and COMMERCE7_KEY must be set in production")


class TestingConfig(BaseConfig):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'

    COMMERCE7_APP_NAME = 'cellarclub-test'
    COMMERCE7_KEY = 'test-key'
    COMMERCE7_WEBHOOK_SECRET = 'c7-webhook-secret'
    COMMERCE7_USER = 'c7-user'
    COMMERCE7_PASSWORD = 'c7-password'
    SHOPIFY_API_SECRET = 'shopify-secret'


config_map = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig
}


def get_config(config_name: str = 'development'):
    """Get configuration class by name."""
    return config_map.get(config_name, DevelopmentConfig)


def validate_config(config_name: str = 'development') -> None:
    """
    Validate configuration before app startup.

    Raises:
        RuntimeError: If validation fails in production
    """
    if config_name == 'production':
        ProductionConfig.validate_secret_key()
        ProductionConfig.validate_crm_credentials()

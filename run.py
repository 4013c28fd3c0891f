"""
WSGI entry point: ``gunicorn run:app`` in containers, ``python run.py`` locally.
"""
import logging
import os

from cellarclub import create_app
from cellarclub.utils.logging_config import setup_logging

setup_logging()
logger = logging.getLogger('cellarclub.run')

config_name = os.getenv('CELLARCLUB_CONFIG') or os.getenv('FLASK_ENV', 'production')

try:
    app = create_app(config_name)
except RuntimeError:
    # Missing DATABASE_URL / SECRET_KEY in production; fail the boot loudly
    logger.exception("Could not build the %s app", config_name)
    raise

logger.info(
    "CellarClub ready (config=%s, database=%s, routes=%d)",
    config_name,
    'configured' if os.getenv('DATABASE_URL') else 'default',
    len(list(app.url_map.iter_rules())),
)


if __name__ == '__main__':
    app.run(
        host=os.getenv('HOST', '127.0.0.1'),
        port=int(os.getenv('PORT', 5000)),
        debug=app.config.get('DEBUG', False),
    )

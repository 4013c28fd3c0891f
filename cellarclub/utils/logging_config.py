"""
Logging setup for the CellarClub console.

One stream handler on the root logger; gunicorn captures stdout/stderr.
"""
import logging
import os
import sys

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'

# Chatty client libraries stay at WARNING unless LOG_LEVEL=DEBUG
QUIET_LOGGERS = ('urllib3', 'httpx', 'httpcore', 'sqlalchemy.engine')

_configured = False


def setup_logging(level: str = None) -> None:
    """Configure root logging once per process."""
    global _configured
    if _configured:
        return

    level_name = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    root.setLevel(log_level)
    root.addHandler(handler)

    if log_level > logging.DEBUG:
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True

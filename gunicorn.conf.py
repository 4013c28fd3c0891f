"""
Gunicorn settings for the CellarClub console.
"""
import os

bind = f"0.0.0.0:{os.getenv('PORT', '8080')}"

# Tier saves block on sequential CRM calls, so sync workers and a worker
# timeout sized to several CRM round trips
workers = int(os.getenv('GUNICORN_WORKERS', '2'))
worker_class = 'sync'
_crm_timeout = float(os.getenv('CRM_TIMEOUT_SECONDS', '30'))
timeout = int(os.getenv('GUNICORN_TIMEOUT', str(int(_crm_timeout * 4))))
graceful_timeout = int(_crm_timeout)

accesslog = '-'
errorlog = '-'
loglevel = os.getenv('LOG_LEVEL', 'info').lower()

proc_name = 'cellarclub'
preload_app = True


def when_ready(server):
    server.log.info("CellarClub listening on %s with %d worker(s)", bind, workers)


def worker_abort(worker):
    worker.log.warning("Worker %s aborted; a CRM call likely exceeded %ss", worker.pid, timeout)

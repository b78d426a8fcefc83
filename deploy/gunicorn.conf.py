"""
Gunicorn configuration for the oauthbridge service.

The bridge is synchronous and I/O-bound (session store + provider HTTP calls),
so threaded workers are used. Everything is driven from environment variables.
"""

from __future__ import annotations

import logging
import multiprocessing
import os

bind = os.environ.get("GUNICORN_BIND", "0.0.0.0:8000")
worker_class = os.environ.get("GUNICORN_WORKER_CLASS", "gthread")
workers = int(os.environ.get("GUNICORN_WORKERS", str(multiprocessing.cpu_count() * 2 + 1)))
threads = int(os.environ.get("GUNICORN_THREADS", "4"))
max_requests = int(os.environ.get("GUNICORN_MAX_REQUESTS", "10000"))
max_requests_jitter = int(os.environ.get("GUNICORN_MAX_REQUESTS_JITTER", "1000"))

# Provider calls time out after OAUTH_HTTP_TIMEOUT; leave headroom above it.
timeout = int(os.environ.get("GUNICORN_TIMEOUT", "60"))
graceful_timeout = int(os.environ.get("GUNICORN_GRACEFUL_TIMEOUT", "30"))
keepalive = int(os.environ.get("GUNICORN_KEEPALIVE", "5"))

accesslog = os.environ.get("GUNICORN_ACCESSLOG", "-")
errorlog = os.environ.get("GUNICORN_ERRORLOG", "-")
loglevel = os.environ.get("GUNICORN_LOGLEVEL", "info")
capture_output = True

# Large provider sessions travel in cookies; keep header limits at gunicorn's maximum.
limit_request_line = int(os.environ.get("GUNICORN_LIMIT_REQUEST_LINE", "8190"))
limit_request_field_size = int(os.environ.get("GUNICORN_LIMIT_REQUEST_FIELD_SIZE", "8190"))
forwarded_allow_ips = os.environ.get("GUNICORN_FORWARDED_ALLOW_IPS", "*")

proc_name = os.environ.get("GUNICORN_PROC_NAME", "oauthbridge")
wsgi_app = "oauthbridge.wsgi:app"


def on_starting(server):
    logger = logging.getLogger(__name__)
    logger.info(
        f"Gunicorn starting: workers={workers}, threads={threads}, "
        f"worker_class={worker_class}, timeout={timeout}s"
    )


def worker_abort(worker):
    """Called when a worker is timed out and is being replaced."""
    logger = logging.getLogger(__name__)
    logger.warning(f"Worker {worker.pid} timed out (>{timeout}s), aborting")

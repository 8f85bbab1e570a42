"""
Gunicorn configuration for the autotune results service.

The service only receives one callback per finished batch job, so a small
fixed worker pool is enough. Override with WEB_CONCURRENCY.

Usage:
    gunicorn autotune_web.main:app -c gunicorn.conf.py
"""

import os

bind = os.getenv("BIND", "0.0.0.0:8000")

workers = int(os.getenv("WEB_CONCURRENCY", "2"))

# Use Uvicorn's ASGI worker for FastAPI
worker_class = "uvicorn.workers.UvicornWorker"

# A callback queries Batch, downloads every output blob and sends one email
timeout = int(os.getenv("GUNICORN_TIMEOUT", "300"))
graceful_timeout = 60

keepalive = 5

# Logging
accesslog = "-"  # stdout
errorlog = "-"   # stderr
loglevel = "info"

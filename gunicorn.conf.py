"""
Gunicorn configuration for LeadCadence production deployment.

Usage:
    gunicorn app.main:app -c gunicorn.conf.py

Per-lead admission locks and the stats cache live in each worker process;
cross-worker admission is serialized by the database row lock.
"""

import multiprocessing
import os

bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")

# CPU cores * 2 + 1 unless WEB_CONCURRENCY is set
workers = int(os.getenv("WEB_CONCURRENCY", str(multiprocessing.cpu_count() * 2 + 1)))

worker_class = "uvicorn.workers.UvicornWorker"

# Engine calls are short store reads/writes
timeout = int(os.getenv("GUNICORN_TIMEOUT", "30"))
keepalive = 5

accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info")

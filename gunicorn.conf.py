"""
Production Server Configuration

Run the analytics API with Uvicorn workers under Gunicorn.
"""

import multiprocessing
import os

# Server socket
bind = os.getenv("BIND", "0.0.0.0:8000")
backlog = 2048

# Worker processes
workers = int(os.getenv("WORKERS", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
max_requests = 10000
max_requests_jitter = 1000
timeout = int(os.getenv("WORKER_TIMEOUT", 120))
keepalive = 5
graceful_timeout = 30

proc_name = "analytics-dashboard-api"
daemon = False
pidfile = os.getenv("PIDFILE", "/tmp/analytics-dashboard.pid")

# Logging; application logs go through structlog on stdout
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info")
accesslog = None


def when_ready(server):
    """Called when server is ready to receive connections."""
    server.log.info("Analytics dashboard API ready on %s", bind)


def worker_abort(worker):
    """Called when worker receives SIGABRT signal."""
    worker.log.warning("Worker %s aborted after timeout", worker.pid)

"""
Gunicorn configuration for the Taskwatch API server.

Env vars that override defaults:
  PORT     — TCP port to bind
  WORKERS  — number of worker processes (default: 1)

Realtime fanout lives in process memory, so clients only receive events
published by the worker they are connected to. Keep WORKERS at 1 unless a
shared channel is put in front of the Broadcaster.
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

workers = int(os.environ.get("WORKERS", "1"))

# Each worker runs Uvicorn's ASGI event loop inside Gunicorn's process manager.
worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5

# SSE connections stay open; the worker is only killed when its loop stalls.
timeout = 120

# stdout only; the application configures its own loggers the same way.
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

graceful_timeout = 30

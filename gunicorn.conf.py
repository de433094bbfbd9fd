"""
Gunicorn configuration for the fleet health API.

Env vars that override defaults:
  PORT     — TCP port to bind
  WORKERS  — number of worker processes (default: 2)
  TIMEOUT  — worker timeout in seconds (default: 180)

Start with:  gunicorn -c gunicorn.conf.py fleethealth.main:app
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

workers = int(os.environ.get("WORKERS", "2"))

worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5

# Long analysis windows and large CSV imports.
timeout = int(os.environ.get("TIMEOUT", "180"))

# Stdout only; the container runtime captures it.
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

graceful_timeout = 30

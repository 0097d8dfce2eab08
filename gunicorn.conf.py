"""
Gunicorn configuration for the Karma Engine API.

  gunicorn -c gunicorn.conf.py karma_engine.main:app

Env vars that override defaults:
  PORT     — TCP port to bind
  WORKERS  — number of worker processes (default: 2)
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

workers = int(os.environ.get("WORKERS", "2"))

worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5

# Must stay above LLM_TIMEOUT_SECONDS (two completions per insight request).
timeout = 120

# stdout only; application loggers share the same stream via configure_logging().
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

graceful_timeout = 30

"""
Process-wide logging setup.

Modules log through `logging.getLogger(__name__)`; this only wires the root
logger to stdout so Gunicorn / the container runtime captures everything.
"""
import logging
import sys

from karma_engine.core.config import settings

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    root = logging.getLogger()
    root.setLevel((level or settings.LOG_LEVEL).upper())
    if any(getattr(h, "_karma_handler", False) for h in root.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))
    handler._karma_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)

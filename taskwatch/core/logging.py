"""
Logging setup.

Stdout only: Gunicorn / the container runtime capture it.
"""
import logging
import sys

from taskwatch.core.config import settings

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    root = logging.getLogger()
    root.setLevel((level or settings.LOG_LEVEL).upper())
    if any(getattr(h, "_taskwatch", False) for h in root.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))
    handler._taskwatch = True  # type: ignore[attr-defined]
    root.addHandler(handler)

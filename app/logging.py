"""
Logging configuration.

One format for uvicorn and the application loggers ("r2c" and "app.*"). Job
lifecycle events come from app.services.jobs / janitor / analysis_executor.
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
APP_LOGGERS = ("r2c", "app")
UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def setup_logging(
    level: int | str = logging.INFO,
    format_string: str | None = None,
    log_file: str | Path | None = None,
) -> None:
    """Stdout always; log_file adds a size-rotated copy (5 x 5 MB)."""
    fmt = format_string or DEFAULT_FORMAT
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(path, maxBytes=5 * 1024 * 1024, backupCount=5, encoding="utf-8"))
    logging.basicConfig(level=level, format=fmt, handlers=handlers, force=True)
    for name in UVICORN_LOGGERS + APP_LOGGERS:
        logging.getLogger(name).setLevel(level)

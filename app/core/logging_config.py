"""
Logging configuration
"""
import logging
import sys
from typing import Optional
from app.core.config import get_settings

HANDLER_MARKER = "_agricure_handler"

# Third-party loggers that log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "hpack", "postgrest")


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger once per process.

    Production lines carry the process id so output from several uvicorn
    workers can be told apart.
    """
    settings = get_settings()

    if settings.is_production:
        fmt = '%(asctime)s - %(process)d - %(name)s - %(levelname)s - %(message)s'
    else:
        fmt = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    formatter = logging.Formatter(fmt, datefmt='%Y-%m-%d %H:%M:%S')

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO))

    # Lifespan re-runs under uvicorn reload; keep a single console handler
    handler = next((h for h in root_logger.handlers if getattr(h, HANDLER_MARKER, False)), None)
    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        setattr(handler, HANDLER_MARKER, True)
        root_logger.addHandler(handler)
    handler.setFormatter(formatter)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

"""Logging configuration for Folio.

Library modules only create module-level loggers; the host application calls
``configure_logging()`` once at startup to attach handlers.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler

from .settings import Settings, settings as default_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_configured = False


def configure_logging(cfg: Settings | None = None) -> logging.Logger:
    """Attach rotating file and stderr handlers to the ``folio`` logger.

    Safe to call more than once; handlers are only installed the first time.

    Returns:
        The package root logger.
    """
    global _configured

    cfg = cfg or default_settings
    root = logging.getLogger("folio")
    if _configured:
        return root

    root.setLevel(cfg.log_level.upper())
    formatter = logging.Formatter(LOG_FORMAT)

    cfg.log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        cfg.log_path,
        maxBytes=cfg.log_max_bytes,
        backupCount=cfg.log_backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    if cfg.log_to_stderr:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        root.addHandler(stream_handler)

    _configured = True
    root.debug("Logging configured (level=%s, file=%s)", cfg.log_level, cfg.log_path)
    return root

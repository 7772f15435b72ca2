"""Logging setup - JSON format in production, human-readable in dev."""

import json
import logging
import sys
from typing import Optional

from supplier_scoring.core.config import Settings, settings as default_settings


class JSONFormatter(logging.Formatter):
    def format(self, record):
        return json.dumps({
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        })


def configure_logging(config: Optional[Settings] = None) -> logging.Logger:
    """Install a single root handler according to the settings."""
    config = config or default_settings

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.log_level))
    root_logger.handlers.clear()

    if config.debug:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    else:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())

    root_logger.addHandler(handler)
    return root_logger

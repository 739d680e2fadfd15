"""morphoscan.core.logging_config

Sets up the package logger.

Modules log through ``logging.getLogger(__name__)`` with snake_case event
names and structured fields in ``extra``. This module decides where those
records go and how they look.
"""

from __future__ import annotations

import json
import logging
import sys

from morphoscan.core.config import LoggingConfig

ROOT_LOGGER = "morphoscan"

# Attributes every LogRecord has; anything else came in through ``extra``.
_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """One JSON object per line, ``extra`` fields included."""

    def format(self, record: logging.LogRecord) -> str:
        out: dict[str, object] = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        for k, v in record.__dict__.items():
            if k not in _RESERVED_ATTRS and not k.startswith("_"):
                out[k] = v
        if record.exc_info:
            out["exc"] = self.formatException(record.exc_info)
        return json.dumps(out, default=str, sort_keys=True)


def setup_logging(cfg: LoggingConfig | None = None) -> logging.Logger:
    """Configure the ``morphoscan`` logger.

    Args:
        cfg: Logging section of the config. Defaults are used when omitted.
    """

    cfg = cfg or LoggingConfig()
    level = logging.getLevelName(cfg.level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)

    # Avoid duplicate handlers when called more than once (tests, re-runs).
    if logger.hasHandlers():
        logger.handlers.clear()

    if cfg.json_output:
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if cfg.log_file is not None:
        file_handler = logging.FileHandler(cfg.log_file, mode="w", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug("logging_initialized", extra={"json_output": cfg.json_output})
    return logger

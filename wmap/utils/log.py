"""
Logging utilities for the wmap toolkit.

Provides unified structured logging:
- pretty console output via Rich
- structured (JSON) file output to `{command}.log` for the commands that
  mutate a store (`wmap ingest`, `wmap serve`)

The default level can be overridden with the WMAP_LOG_LEVEL environment
variable (e.g. WMAP_LOG_LEVEL=DEBUG to see per-cluster merges).
"""

import logging
import os
import sys
import json
from pathlib import Path

from rich.logging import RichHandler

AUDITED_COMMANDS = ("ingest", "serve")


class JSONFormatter(logging.Formatter):
    """
    Formatter that serializes log records to one JSON object per line.
    """
    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level":     record.levelname,
            "logger":    record.name,
            "message":   record.getMessage(),
        }
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_record, ensure_ascii=False)


def _audit_command() -> str | None:
    if len(sys.argv) > 1 and sys.argv[1] in AUDITED_COMMANDS:
        return sys.argv[1]
    return None


def _env_level() -> tuple[str, str | None]:
    """
    Level from WMAP_LOG_LEVEL, plus the rejected value if it was not a
    known level name (the caller then falls back to INFO).
    """
    raw = os.environ.get("WMAP_LOG_LEVEL", "INFO").strip().upper()
    if isinstance(logging.getLevelName(raw), int):
        return raw, None
    return "INFO", raw


def get_logger(name: str, level: int | str | None = None) -> logging.Logger:
    """
    Return a configured logger for the given name.

    Attaches:
    - a RichHandler for console output
    - for store-mutating commands, a FileHandler writing JSON logs to
      {cwd}/{command}.log

    Parameters
    ----------
    name
        Logger name (typically __name__).
    level
        Log level (int or string). Defaults to $WMAP_LOG_LEVEL, else INFO;
        an unknown $WMAP_LOG_LEVEL is reported and treated as INFO.

    Returns
    -------
    logging.Logger
        Configured logger instance.
    """
    rejected = None
    if level is None:
        level, rejected = _env_level()
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        console_handler = RichHandler(rich_tracebacks=True)
        console_handler.setLevel(level)
        logger.addHandler(console_handler)

        command = _audit_command()
        if command is not None:
            log_path = Path.cwd() / f"{command}.log"
            file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
            file_handler.setLevel(level)
            file_handler.setFormatter(JSONFormatter())
            logger.addHandler(file_handler)

        if rejected is not None:
            logger.warning("Unknown WMAP_LOG_LEVEL %r, using INFO", rejected)

    return logger

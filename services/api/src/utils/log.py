"""
Environment-aware logging.

- development: human-readable, coloured lines
- staging/production: one JSON object per line for log aggregation

``init`` configures the root logger once at startup so that the domain
packages, which log through ``logging.getLogger(__name__)``, share the same
handler and format.
"""

import json
import logging
import os
import sys
from datetime import datetime

STRUCTURED_ENVIRONMENTS = ("production", "prod", "staging")


def _environment() -> str:
    return os.getenv("ENVIRONMENT", "development").lower()


class ColoredFormatter(logging.Formatter):
    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
        "ENDC": "\033[0m",
    }

    def format(self, record):
        level_color = self.COLORS.get(record.levelname, "")
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        colored_level = f"{level_color}{record.levelname:8s}{self.COLORS['ENDC']}"
        module_name = record.name if record.name != "__main__" else "main"
        line = f"[{timestamp}] {colored_level} [{module_name}] {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class JsonFormatter(logging.Formatter):
    def format(self, record):
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
            "environment": _environment(),
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def init(level: str = "INFO") -> None:
    handler = logging.StreamHandler(sys.stdout)
    if _environment() in STRUCTURED_ENVIRONMENTS:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(ColoredFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    # uvicorn installs its own handlers; route them through ours
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).handlers.clear()
        logging.getLogger(name).propagate = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)

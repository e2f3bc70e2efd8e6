"""
Logging configuration for ArbEdge.

config/logging.yaml is applied with dictConfig when present. Locally the
output is human-readable; outside local mode every handler switches to the
JSON-lines formatter so log shippers can parse it.
"""

import json
import logging
import logging.config
import sys
from pathlib import Path
from typing import Optional

import yaml

from arbedge.core.config import Settings, get_settings

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Chatty per-request/per-tick loggers of our libraries
QUIET_LOGGERS = ("httpx", "httpcore", "apscheduler.executors.default")


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record, DATE_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def _default_config_path() -> Optional[Path]:
    for parent in Path(__file__).resolve().parents:
        if (parent / "pyproject.toml").exists():
            return parent / "config" / "logging.yaml"
    return None


def setup_logging(
    settings: Optional[Settings] = None,
    config_path: Optional[str] = None,
    log_level: Optional[str] = None,
) -> None:
    """
    Configure logging for the process.

    Args:
        settings: Source of arbedge_env and log_level
        config_path: logging.yaml to apply. Auto-detected if not provided.
        log_level: Overrides settings.log_level for the arbedge logger
    """
    settings = settings or get_settings()
    level = (log_level or settings.log_level).upper()

    path = Path(config_path) if config_path else _default_config_path()

    if path is not None and path.exists():
        with open(path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)

        formatters = config.setdefault("formatters", {})
        formatters.setdefault("json", {"()": JsonFormatter})

        for handler in config.get("handlers", {}).values():
            if "filename" in handler:
                Path(handler["filename"]).parent.mkdir(parents=True, exist_ok=True)
            if not settings.is_local:
                handler["formatter"] = "json"

        logging.config.dictConfig(config)
    else:
        handler = logging.StreamHandler(sys.stdout)
        if settings.is_local:
            handler.setFormatter(logging.Formatter(TEXT_FORMAT, DATE_FORMAT))
        else:
            handler.setFormatter(JsonFormatter())
        logging.basicConfig(level=level, handlers=[handler])

    logging.getLogger("arbedge").setLevel(level)

    if level != "DEBUG":
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Logger under the arbedge namespace."""
    if not name.startswith("arbedge"):
        name = f"arbedge.{name}"
    return logging.getLogger(name)


class LoggerMixin:
    """Gives a class a `self.logger` named after it."""

    @property
    def logger(self) -> logging.Logger:
        if not hasattr(self, "_logger"):
            self._logger = get_logger(self.__class__.__name__)
        return self._logger

"""Structured logging configuration"""

import json
import logging
import os
from datetime import datetime
from typing import Any, Dict


class StructuredLogger:
    """Structured JSON logger; keyword arguments become log fields"""

    def __init__(self, name: str, level: str = "INFO"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper(), logging.INFO))

        # One console handler per logger name, even if get_logger is called repeatedly
        if not any(isinstance(h.formatter, JSONFormatter) for h in self.logger.handlers):
            handler = logging.StreamHandler()
            handler.setFormatter(JSONFormatter())
            self.logger.addHandler(handler)
            self.logger.propagate = False

    def log(self, level: str, message: str, exc_info: bool = False, **fields: Any):
        """Log structured message"""
        getattr(self.logger, level.lower())(
            message,
            exc_info=exc_info,
            extra={"fields": fields},
        )

    def info(self, message: str, **fields):
        self.log("info", message, **fields)

    def warning(self, message: str, **fields):
        self.log("warning", message, **fields)

    def error(self, message: str, exc_info: bool = False, **fields):
        self.log("error", message, exc_info=exc_info, **fields)

    def debug(self, message: str, **fields):
        self.log("debug", message, **fields)


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with structured fields merged in"""

    def format(self, record):
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        log_data.update(getattr(record, "fields", {}) or {})

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def get_logger(name: str) -> StructuredLogger:
    """Get or create structured logger"""
    log_level = os.getenv("LOG_LEVEL", "INFO")
    return StructuredLogger(name, log_level)

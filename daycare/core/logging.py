import json
import logging
import os
import time
from logging.handlers import RotatingFileHandler

from daycare.core.config import GetBoolEnv, GetEnv, GetIntEnv

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class LocalTimeFormatter(logging.Formatter):
    converter = time.localtime


class JsonLineFormatter(LocalTimeFormatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"))


def _rotating_handler(path: str, level: str, formatter: logging.Formatter) -> RotatingFileHandler:
    max_bytes = GetIntEnv("LOG_MAX_BYTES", 5_000_000)
    backup_count = GetIntEnv("LOG_BACKUP_COUNT", 5)
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging() -> None:
    log_level = GetEnv("LOG_LEVEL", "INFO").upper()
    log_file_path = GetEnv("LOG_FILE_PATH", "./logs/daycare.log")
    frontend_log_file_path = GetEnv("FRONTEND_LOG_FILE_PATH", "./logs/frontend.log")
    rollover_log_file_path = GetEnv("ROLLOVER_LOG_FILE_PATH", "./logs/rollover.log")
    json_enabled = GetBoolEnv("LOG_JSON_ENABLED")

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    if json_enabled:
        formatter = JsonLineFormatter(datefmt=_DATE_FORMAT)
    else:
        formatter = LocalTimeFormatter(_TEXT_FORMAT, datefmt=_DATE_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)

    root_logger.addHandler(console_handler)
    root_logger.addHandler(_rotating_handler(log_file_path, log_level, formatter))

    frontend_logger = logging.getLogger("frontend")
    frontend_logger.handlers.clear()
    frontend_logger.propagate = False
    frontend_logger.setLevel(log_level)
    frontend_logger.addHandler(console_handler)
    frontend_logger.addHandler(_rotating_handler(frontend_log_file_path, log_level, formatter))

    # Rollover batches also get their own file so nightly runs can be audited in one place.
    rollover_logger = logging.getLogger("daycare.rollover")
    rollover_logger.handlers.clear()
    rollover_logger.setLevel(log_level)
    rollover_logger.addHandler(_rotating_handler(rollover_log_file_path, log_level, formatter))

    logging.getLogger("uvicorn.access").handlers.clear()


def format_frontend_message(message: str, context: dict | None = None) -> str:
    if not context:
        return message
    payload = {"message": message, "context": context}
    return json.dumps(payload, separators=(",", ":"))

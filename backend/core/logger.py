# core/logger.py
import json
import logging
import os

from contextvars import ContextVar
from logging import LogRecord
from logging.handlers import RotatingFileHandler

from core.settings import settings

# Backtest run id or HTTP request id, whichever scope is active
run_id_ctx_var = ContextVar("run_id", default=None)

LOG_DIR = settings.LOG_DIR
LOG_FILE = os.path.join(LOG_DIR, "app.log")
MAX_BYTES = 5 * 1024 * 1024  # 5 MB
BACKUP_COUNT = 5

NO_RUN = "-"

# Passed through `extra=` by the engines
CONTEXT_FIELDS = ("market", "interval", "strategy")


class JsonFormatter(logging.Formatter):
    def format(self, record: LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        run_id = getattr(record, "run_id", NO_RUN)
        if run_id != NO_RUN:
            entry["run_id"] = run_id
        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                entry[field] = getattr(record, field)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class RunIdFilter(logging.Filter):
    def filter(self, record: LogRecord) -> bool:
        record.run_id = run_id_ctx_var.get() or NO_RUN
        return True


def get_logger(name: str) -> logging.Logger:
    os.makedirs(LOG_DIR, exist_ok=True)

    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter("[%(asctime)s] %(levelname)s [%(run_id)s] %(name)s - %(message)s"))
    console_handler.setLevel(settings.LOG_LEVEL)
    console_handler.addFilter(RunIdFilter())
    logger.addHandler(console_handler)

    # One JSON object per line, rotated at MAX_BYTES
    file_handler = RotatingFileHandler(LOG_FILE, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT)
    file_handler.setFormatter(JsonFormatter())
    file_handler.setLevel(logging.DEBUG)
    file_handler.addFilter(RunIdFilter())
    logger.addHandler(file_handler)

    return logger

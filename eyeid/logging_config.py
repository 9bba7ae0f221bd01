# eyeid/logging_config.py
import logging
import os
from pathlib import Path

from .filters import AsciiOnlyFilter

LOG_DIR = Path(os.environ.get("EYEID_LOG_DIR", Path(__file__).resolve().parent.parent / "logs"))
LOG_LEVEL = os.environ.get("EYEID_LOG_LEVEL", "INFO").upper()
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_KEEP_DAYS = 3


class ErrorLevelFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


class InfoAndAboveFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.INFO


def _rotating(filename: str, level: str, only: str) -> dict:
    return {
        "()": "eyeid.logging_handlers.SizeAndTimeRotatingFileHandler",
        "level": level,
        "formatter": "with_func",
        "filename": str(LOG_DIR / filename),
        "max_bytes": LOG_MAX_BYTES,
        "days": LOG_KEEP_DAYS,
        "delay": True,
        "filters": [only],
    }


LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "ascii_only": {"()": AsciiOnlyFilter},
        "only_errors": {"()": ErrorLevelFilter},
        "info_and_above": {"()": InfoAndAboveFilter},
    },
    "formatters": {
        "console": {
            "format": "%(levelname)s | %(name)s | %(asctime)s | %(message)s",
            "datefmt": "%H:%M:%S",
        },
        # в файлах ещё и функция со строкой, чтобы ошибку можно было найти без отладчика
        "with_func": {
            "format": "%(asctime)s.%(msecs)03d %(levelname)s %(name)s %(funcName)s:%(lineno)d | %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "level": LOG_LEVEL,
            "formatter": "console",
            "filters": ["ascii_only"],
        },
        "eyeid_file": _rotating("eyeid.log", "INFO", "info_and_above"),
        "eyeid_errors": _rotating("eyeid_err.log", "ERROR", "only_errors"),
    },
    "loggers": {
        "app": {
            "handlers": ["console", "eyeid_file", "eyeid_errors"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
        "django.request": {
            "handlers": ["console", "eyeid_errors"],
            "level": "WARNING",
            "propagate": False,
        },
        # Глушим шум сторонних библиотек
        "urllib3": {"level": "WARNING", "handlers": [], "propagate": False},
        "http.client": {"level": "WARNING", "handlers": [], "propagate": False},
        "ultralytics": {"level": "WARNING", "handlers": [], "propagate": True},
        "insightface": {"level": "WARNING", "handlers": [], "propagate": True},
        "mlflow": {"level": "WARNING", "handlers": [], "propagate": True},
    },
    "root": {"level": "WARNING", "handlers": ["console"]},
}

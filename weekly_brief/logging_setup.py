import logging
from logging.config import dictConfig
from logging import LogRecord
from pathlib import Path
import contextvars
import os

request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")

class RequestIdFilter(logging.Filter):
    """Stamps every record with the id RequestContextMiddleware set for this request."""
    def filter(self, record: LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True

BASE_DIR = Path(__file__).resolve().parents[1]
LOG_DIR  = Path(os.getenv("LOG_DIR", BASE_DIR / "logs"))
LOG_FILE = LOG_DIR / "weekly_brief.log"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# third-party loggers that are chatty at INFO (one line per HTTP call or SQL statement)
QUIET_LOGGERS = ("httpx", "openai", "sqlalchemy.engine")

def setup_logging() -> Path:
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    pipeline_handlers = ["console", "file"]
    dictConfig({
        "version": 1,
        "disable_existing_loggers": False,

        "filters": {
            "request_id": {"()": RequestIdFilter},
        },

        "formatters": {
            "standard": {
                "format": (
                    "%(asctime)s | %(levelname)s | %(name)s | req=%(request_id)s | "
                    "%(message)s (%(filename)s:%(lineno)d)"
                )
            },
            "uvicorn_access": {
                "format": "%(asctime)s | %(levelname)s | %(message)s"
            },
        },

        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "filters": ["request_id"],
            },
            "file": {
                "class": "logging.handlers.TimedRotatingFileHandler",
                "formatter": "standard",
                "filters": ["request_id"],
                "filename": str(LOG_FILE),
                "when": "midnight",
                "backupCount": 14,
                "encoding": "utf-8",
            },
            "uvicorn_console": {
                "class": "logging.StreamHandler",
                "formatter": "uvicorn_access",
            },
        },

        "loggers": {
            "weekly_brief": {"handlers": pipeline_handlers, "level": LOG_LEVEL, "propagate": False},
            # weekly_assembly / auto_send job runs
            "apscheduler": {"handlers": pipeline_handlers, "level": "INFO", "propagate": False},
            **{
                name: {"handlers": pipeline_handlers, "level": "WARNING", "propagate": False}
                for name in QUIET_LOGGERS
            },
            "uvicorn.error":  {"handlers": ["uvicorn_console", "file"], "level": "INFO", "propagate": False},
            "uvicorn.access": {"handlers": ["uvicorn_console", "file"], "level": "INFO", "propagate": False},
        },

        "root": {"handlers": pipeline_handlers, "level": LOG_LEVEL},
    })

    logging.getLogger("weekly_brief").info(f"Logging to: {LOG_FILE}")
    return LOG_FILE

def get_logger(name: str = "weekly_brief") -> logging.Logger:
    return logging.getLogger(name)

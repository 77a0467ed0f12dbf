import json
import logging
from logging.config import dictConfig

STARTUP_LOGGER = "image_upload.startup"

# Keys whose values never reach a log line, wherever they appear in ``extra``
REDACTED_KEYS = frozenset(
    {
        "access_key_id",
        "secret_access_key",
        "session_token",
        "api_key",
        "authorization",
        "x-api-key",
    }
)


def _redact(value):
    if isinstance(value, dict):
        return {
            key: "***" if str(key).lower() in REDACTED_KEYS else _redact(item)
            for key, item in value.items()
        }
    return value


class RedactCredentialsFilter(logging.Filter):
    """Masks credential fields in the structured ``extra`` payload."""

    def filter(self, record: logging.LogRecord) -> bool:
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            record.extra = _redact(extra)
        return True


def setup_logging(level: str = "INFO") -> None:
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "redact": {"()": RedactCredentialsFilter},
            },
            "formatters": {
                "json": {
                    "()": JsonFormatter,
                },
                "plain": {
                    "format": "%(levelname)s %(name)s: %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "json",
                    "filters": ["redact"],
                },
                "startup_console": {
                    "class": "logging.StreamHandler",
                    "formatter": "plain",
                    "filters": ["redact"],
                },
            },
            "root": {
                "level": level.upper(),
                "handlers": ["console"],
            },
            "loggers": {
                STARTUP_LOGGER: {
                    "handlers": ["startup_console"],
                    "level": "INFO",
                    "propagate": False,
                },
                # botocore debug output includes signed request headers
                "botocore": {"level": "WARNING"},
                "boto3": {"level": "WARNING"},
                "urllib3": {"level": "WARNING"},
            },
        }
    )


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "extra") and isinstance(record.extra, dict):
            payload.update(record.extra)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)

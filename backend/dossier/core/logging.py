import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

_configured = False

# Context passed through `extra={...}` and copied onto every JSON line
STRUCTURED_FIELDS = (
    "job_id",
    "request_id",
    "section",
    "step",
    "report_type",
    "error",
    "model",
    "prompt_tokens",
    "completion_tokens",
)


class JsonFormatter(logging.Formatter):
    """One JSON object per line, shared by the API and the Celery worker."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "service": getattr(record, "service", "dossier_backend"),
            "message": record.getMessage(),
        }
        payload.update(
            {name: getattr(record, name) for name in STRUCTURED_FIELDS if hasattr(record, name)}
        )
        if record.exc_info:
            payload["exc_type"] = record.exc_info[0].__name__ if record.exc_info[0] else None
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: int | str | None = None) -> None:
    """
    Install the JSON handler on the root logger.

    The level defaults to LOG_LEVEL from settings. Only the first call has an
    effect.
    """
    global _configured
    if _configured:
        return

    if level is None:
        from .config import get_settings

        level = get_settings().LOG_LEVEL
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    _configured = True

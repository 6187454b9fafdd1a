"""
Logging setup for the API.

Plain text lines by default; one JSON object per line when ``LOG_JSON`` is set,
which is what container log collectors expect.
"""
import json
import logging
import sys
from datetime import datetime, timezone

_RESERVED = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'message', 'exc_info',
    'exc_text', 'stack_info', 'taskName',
}


class JSONFormatter(logging.Formatter):
    """Render a record as a single JSON line."""

    def __init__(self, service_name: str = "pine-bridge"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "service": self.service_name,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        # Anything passed through `extra=`
        extra_fields = {k: v for k, v in record.__dict__.items() if k not in _RESERVED}
        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(log_entry, default=str, separators=(',', ':'))


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure the ``pine_bridge`` logger tree. Safe to call more than once."""
    root = logging.getLogger("pine_bridge")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
    root.addHandler(handler)
    root.propagate = False

import json
import logging
from datetime import UTC, datetime

_TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """
    Formatter that outputs JSON strings for structured logging systems (ELK, Datadog, etc.)
    """

    def __init__(self, service_name: str | None = None):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        service = getattr(record, "service", None) or self.service_name
        if service:
            log_obj["service"] = service
        if hasattr(record, "request_id"):
            log_obj["request_id"] = record.request_id
        if hasattr(record, "agent_id"):
            log_obj["agent_id"] = record.agent_id
        if hasattr(record, "client_id"):
            log_obj["client_id"] = record.client_id

        return json.dumps(log_obj)


def setup_structured_logging(service_name: str, level: str = "INFO", fmt: str = "json") -> None:
    """
    Configure the root logger for a service.

    ``fmt`` is ``json`` for the JSONFormatter or ``text`` for a plain line format.
    Existing root handlers (e.g. from uvicorn's default config) are replaced.
    """
    handler = logging.StreamHandler()
    if fmt == "text":
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))
    else:
        handler.setFormatter(JSONFormatter(service_name))

    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())
    if root_logger.handlers:
        root_logger.handlers = []
    root_logger.addHandler(handler)

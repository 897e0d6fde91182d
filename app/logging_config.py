"""
Logging-Konfiguration.

Enthält JsonFormatter, RequestIdFilter und setup_logging() für einheitliches
Log-Level und optionales JSON-Format (z. B. für Produktion).
"""

import json
import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

# Korrelations-ID des aktuellen Requests (gesetzt von RequestIDMiddleware)
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class RequestIdFilter(logging.Filter):
    """Hängt die Request-ID des aktuellen Kontexts an jeden Log-Record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


class JsonFormatter(logging.Formatter):
    """Formatter für strukturierte JSON-Logs (eine Zeile pro Eintrag)."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = getattr(record, "request_id", None)
        if request_id:
            log_obj["request_id"] = request_id
        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_obj, default=str)


def setup_logging(log_level: str = "INFO", log_json: bool = False) -> None:
    """
    Setzt Log-Level, Request-ID-Filter und optional JSON-Format für alle Root-Handler.

    Args:
        log_level: Name des Log-Levels (z. B. "INFO", "DEBUG").
        log_json: Wenn True, werden alle Handler auf JsonFormatter umgestellt.
    """
    root = logging.getLogger()
    level = getattr(logging, log_level.upper(), logging.INFO)
    root.setLevel(level)
    for h in root.handlers:
        if not any(isinstance(f, RequestIdFilter) for f in h.filters):
            h.addFilter(RequestIdFilter())
        if log_json:
            h.setFormatter(JsonFormatter())

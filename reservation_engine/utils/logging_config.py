"""
Structured Logging Configuration

Provides JSON-formatted logging with:
- Request ID tracking
- Principal context
- Entity info for reservation and calendar events
"""

import logging
import json
import sys
from datetime import date, datetime, timezone
from typing import Optional, Any, Dict
from contextvars import ContextVar

request_id_var: ContextVar[str] = ContextVar('request_id', default='')
user_id_var: ContextVar[str] = ContextVar('user_id', default='')

CONTEXT_VARS = (("request_id", request_id_var), ("user_id", user_id_var))

# LogRecord attributes copied into the JSON line when present
RECORD_FIELDS = ("entity_type", "entity_id")

QUIET_LOGGERS = ("httpx", "sqlalchemy.engine", "slowapi")


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with request and entity context"""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        for key, var in CONTEXT_VARS:
            value = var.get()
            if value:
                log_data[key] = value

        for field in RECORD_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            log_data["data"] = extra_data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class StructuredLogger(logging.LoggerAdapter):
    """
    Logger adapter that adds structured context to log messages.
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = kwargs.get('extra', {})
        extra.update(self.extra)
        kwargs['extra'] = extra
        return msg, kwargs

    def log_with_context(
        self,
        level: int,
        msg: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        **extra_data
    ):
        """Log with additional structured context."""
        extra = {}
        if entity_type:
            extra['entity_type'] = entity_type
        if entity_id:
            extra['entity_id'] = entity_id
        if extra_data:
            extra['extra_data'] = extra_data

        self.log(level, msg, extra=extra)

    def reservation_created(self, reservation_id: str, property_id: str, check_in: date,
                            check_out: date, total_amount):
        self.log_with_context(
            logging.INFO,
            f"Reservation created: {property_id} {check_in} -> {check_out}",
            entity_type="reservation",
            entity_id=reservation_id,
            property_id=property_id,
            total_amount=str(total_amount)
        )

    def reservation_status_changed(self, reservation_id: str, old_status: str, new_status: str):
        self.log_with_context(
            logging.INFO,
            f"Reservation status changed: {old_status} -> {new_status}",
            entity_type="reservation",
            entity_id=reservation_id,
            old_status=old_status,
            new_status=new_status
        )

    def calendar_changed(self, action: str, property_id: str, start_date: date, end_date: date,
                         count: int, reason: Optional[str] = None):
        self.log_with_context(
            logging.INFO,
            f"Calendar {action}: {count} date(s) {start_date} -> {end_date}",
            entity_type="property",
            entity_id=property_id,
            action=action,
            count=count,
            reason=reason
        )


def setup_logging(level: str = "INFO", json_format: bool = True) -> None:
    """Route the root and uvicorn loggers to stdout in JSON or plain text"""
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(
        JSONFormatter() if json_format
        else logging.Formatter('%(asctime)s %(levelname)s [%(name)s] %(message)s')
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = [handler]
        uvicorn_logger.propagate = False

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(logging.getLogger(name), {})


def set_request_context(request_id: str, user_id: Optional[str] = None):
    request_id_var.set(request_id)
    if user_id:
        user_id_var.set(user_id)


def clear_request_context():
    for _, var in CONTEXT_VARS:
        var.set('')

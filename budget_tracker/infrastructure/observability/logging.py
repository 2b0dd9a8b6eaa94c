"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from budget_tracker.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_snapshot_generation(
    request_id: str,
    account_id: int | None,
    operation: str,
    snapshots_processed: int,
    duration_ms: float,
) -> None:
    """Log structured generation outcome for analysis"""
    logging.info(
        "Snapshot generation completed",
        extra={
            "request_id": request_id,
            "account_id": account_id,
            "step": "snapshot_generation_complete",
            "operation": operation,
            "snapshots_processed": snapshots_processed,
            "duration_ms": duration_ms,
        },
    )

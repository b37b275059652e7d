"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List

from pythonjsonlogger import jsonlogger

from docbox_engine.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name
        log_record["environment"] = settings.environment


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


def log_match_result(
    request_id: str,
    candidate_count: int,
    match_count: int,
    suggested_action: str,
    top_score: int,
    duration_ms: float,
) -> None:
    """Log structured record-linking outcome"""
    logging.info(
        "Match completed",
        extra={
            "request_id": request_id,
            "step": "match_complete",
            "candidate_count": candidate_count,
            "match_count": match_count,
            "suggested_action": suggested_action,
            "top_score": top_score,
            "duration_ms": duration_ms,
        },
    )


def log_status_evaluated(
    request_id: str,
    box_id: str,
    doc_status: str,
    completion_percent: int,
) -> None:
    """Log checklist recompute outcome for a box"""
    logging.info(
        "Checklist evaluated",
        extra={
            "request_id": request_id,
            "box_id": box_id,
            "step": "checklist_evaluated",
            "doc_status": doc_status,
            "completion_percent": completion_percent,
        },
    )


def log_aggregation(
    request_id: str,
    record_count: int,
    usable_count: int,
    conflicting_fields: List[str],
) -> None:
    """Log field aggregation outcome, including fields left for human review"""
    logging.info(
        "Aggregation completed",
        extra={
            "request_id": request_id,
            "step": "aggregation_complete",
            "record_count": record_count,
            "usable_count": usable_count,
            "conflicting_fields": conflicting_fields,
        },
    )

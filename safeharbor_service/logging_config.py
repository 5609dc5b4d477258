"""
Logging configuration for the SafeHarbor service.

Provides structured JSON logging for audit trails and debugging.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import List, Optional

# Context variable for request ID tracking
request_id_var: ContextVar[str] = ContextVar('request_id', default='')


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs logs in a consistent JSON format suitable for
    log aggregation systems like ELK, Splunk, or CloudWatch.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class AuditLogger:
    """
    Specialized logger for audit events.

    One method per registry change, agreement update, adoption,
    rejected mutation and security-relevant action.
    """

    def __init__(self, name: str = "safeharbor.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        """Internal logging method with extra fields."""
        extra = {
            "event_type": event_type,
            "request_id": request_id_var.get(),
            **kwargs
        }

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def registry_changed(
        self,
        registry: str,
        owner: str,
        action: str,
        networks: List[str]
    ) -> None:
        """Log registry initialization or a recognized-network change."""
        self._log(
            logging.INFO,
            "REGISTRY_CHANGED",
            registry=registry,
            owner=owner,
            action=action,
            networks=networks,
            message=f"Registry {action}: {len(networks)} network(s)"
        )

    def agreement_updated(
        self,
        agreement: str,
        owner: str,
        update_type: str,
        data_hash: str
    ) -> None:
        """Log an accepted agreement mutation."""
        self._log(
            logging.INFO,
            "AGREEMENT_UPDATED",
            agreement=agreement,
            owner=owner,
            update_type=update_type,
            data_hash=data_hash,
            message=f"Agreement {agreement} {update_type}"
        )

    def adoption_updated(
        self,
        adoption: str,
        adopter: str,
        network_id: str,
        update_type: str,
        agreement: Optional[str] = None
    ) -> None:
        """Log an accepted adoption mutation."""
        self._log(
            logging.INFO,
            "ADOPTION_UPDATED",
            adoption=adoption,
            adopter=adopter,
            network_id=network_id,
            update_type=update_type,
            agreement=agreement,
            message=f"Adoption {adoption} {update_type} on {network_id}"
        )

    def mutation_rejected(
        self,
        operation: str,
        signer: str,
        kind: str,
        field: Optional[str] = None
    ) -> None:
        """Log a rejected mutation."""
        self._log(
            logging.WARNING,
            "MUTATION_REJECTED",
            operation=operation,
            signer=signer,
            kind=kind,
            field=field,
            message=f"{operation} rejected: {kind}"
        )

    def security_event(
        self,
        event: str,
        severity: str = "medium",
        **details
    ) -> None:
        """Log a security-relevant event."""
        level = {
            "low": logging.INFO,
            "medium": logging.WARNING,
            "high": logging.ERROR,
            "critical": logging.CRITICAL
        }.get(severity, logging.WARNING)

        self._log(
            level,
            "SECURITY_EVENT",
            security_event=event,
            severity=severity,
            **details,
            message=f"Security event: {event}"
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting (recommended for production)
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set the request ID for the current context.

    Args:
        request_id: Request ID to set, or None to generate one

    Returns:
        The request ID that was set
    """
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


# Global audit logger instance
audit_log = AuditLogger()

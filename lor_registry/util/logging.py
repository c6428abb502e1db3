"""
Structured logging for registry operations and their audit trail.
"""

import logging
from typing import Any, Dict, List

# Fields never written to logs in clear text
SENSITIVE_FIELDS = ['email']


class StructuredLogger:
    """Structured logger for student, authorization and transition operations."""

    def __init__(self, name: str = "lor_registry"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.info(message)

    def log_student_operation(self, operation: str, student_id: int, actor: str = None,
                              fields: Dict[str, Any] = None, status: str = "success"):
        """Log a student record operation; record fields are sanitized first."""
        details = {"student_id": student_id}
        if actor is not None:
            details["actor"] = actor
        if fields:
            details["fields"] = sanitize_payload(fields)

        self.log_operation(f"student.{operation}", status, details)

    def log_authorization(self, actor: str, target: str, status: str = "success"):
        """Log an approver authorization."""
        self.log_operation("approver.authorize", status, {"actor": actor, "target": target})

    def log_transition(self, student_id: int, from_state: str, to_state: str, actor: str):
        """Log a workflow state transition."""
        log_details = {
            "student_id": student_id,
            "from": from_state,
            "to": to_state,
            "actor": actor
        }
        self.log_operation("workflow.transition", "applied", log_details)

    def log_rejection(self, action: str, actor: str, error_type: str, message: str, student_id: int = None):
        """Log a rejected operation with a bounded message."""
        log_details = {
            "action": action,
            "actor": actor,
            "error_type": error_type,
            "message": message[:100] if message else ""
        }
        if student_id is not None:
            log_details["student_id"] = student_id

        self.logger.warning(f"Operation: {action}, Status: rejected, Details: {log_details}")

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()


def sanitize_payload(payload: Any, reveal_sensitive: bool = False, sensitive_fields: List[str] = None) -> Any:
    """Sanitize payloads for audit logging."""
    if sensitive_fields is None:
        sensitive_fields = SENSITIVE_FIELDS

    if isinstance(payload, dict):
        sanitized = {}
        for k, v in payload.items():
            if reveal_sensitive or k not in sensitive_fields:
                sanitized[k] = sanitize_payload(v, reveal_sensitive, sensitive_fields)
            else:
                sanitized[k] = "[REDACTED]"
        return sanitized
    elif isinstance(payload, str):
        # Truncate long strings
        return payload[:100] + "..." if len(payload) > 100 else payload
    elif isinstance(payload, list):
        return [sanitize_payload(item, reveal_sensitive, sensitive_fields) for item in payload]
    else:
        return payload

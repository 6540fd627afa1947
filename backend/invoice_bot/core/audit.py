"""
Audit logging for security-relevant bot events.

Only identities and event types are logged here, never conversation content.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Optional

# Separate logger for audit events (can be shipped to centralized logging)
audit_logger = logging.getLogger("audit")


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuditLog:
    """Central audit logging for authorization and invoice events."""

    @staticmethod
    def log_access_denied(user_id: int, channel: str = "telegram", reason: str = "not operator"):
        """
        Log a message from an identity that is not the configured operator.

        Usage:
            AuditLog.log_access_denied(123456789)
        """
        log_entry = {
            "timestamp": _timestamp(),
            "event_severity": "WARNING",
            "event_type": "access_denied",
            "channel": channel,
            "user_id": user_id,
            "reason": reason,
        }

        audit_logger.warning(json.dumps(log_entry))

    @staticmethod
    def log_invoice_created(invoice_number: str, user_id: int, total: float):
        """
        Log every finalized invoice (legal/accounting document).

        Usage:
            AuditLog.log_invoice_created("202601001", 123456789, 179760.0)
        """
        log_entry = {
            "timestamp": _timestamp(),
            "event_type": "invoice.create",
            "invoice_number": invoice_number,
            "user_id": user_id,
            "total": total,
        }

        audit_logger.info(json.dumps(log_entry))

    @staticmethod
    def log_webhook_rejected(ip_address: str = "", details: Optional[str] = None):
        """Log webhook calls carrying a wrong or missing secret token."""
        log_entry = {
            "timestamp": _timestamp(),
            "event_type": "security.webhook_rejected",
            "ip_address": ip_address,
        }

        if details:
            log_entry["details"] = details

        audit_logger.warning(json.dumps(log_entry))

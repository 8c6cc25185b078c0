"""
Audit logging for the BIP47 Terminal.

Security-relevant events (challenge issuance, proof redemption, guestbook
submissions) are written as JSON lines to the ``audit`` logger.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

_logger = logging.getLogger("audit")
_audit_logger = None  # Will be initialized by init_audit_logger


def init_audit_logger():
    """Initialize the audit logger."""
    global _audit_logger

    _logger.setLevel(logging.INFO)

    # Add console handler if not already present
    if not _logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s - AUDIT - %(levelname)s - %(message)s"))
        _logger.addHandler(handler)

    _audit_logger = AuditLogger()
    _logger.debug("Audit logger initialized")


def get_audit_logger():
    """Get the audit logger instance."""
    global _audit_logger

    if _audit_logger is None:
        init_audit_logger()
    return _audit_logger


def _short(value: Optional[str], length: int = 16) -> Optional[str]:
    if value is None or len(value) <= length:
        return value
    return f"{value[:length]}..."


class AuditLogger:
    """
    Audit logging interface for security events.

    Nonces and payment codes are truncated so the log never carries a full
    replayable proof.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or _logger

    def log_event(self, event: str, **details: Any) -> None:
        """Generic structured audit event."""

        payload = {"event": event, **details, "timestamp": datetime.now(timezone.utc).isoformat()}
        self.logger.info(json.dumps(payload, default=str))

    def log_challenge_issued(self, nonce: str, expiry: int, ip_address: Optional[str] = None):
        """Log challenge issuance."""
        self.log_event("auth47.challenge_issued", nonce=_short(nonce, 8), expiry=expiry, ip=ip_address)

    def log_redemption(
        self,
        nonce: Optional[str],
        path: str,
        success: bool,
        reason: Optional[str] = None,
        nym: Optional[str] = None,
        ip_address: Optional[str] = None,
    ):
        """Log a proof redemption attempt on either ingress path."""
        event = "auth47.verify_success" if success else "auth47.verify_failed"
        details = {"nonce": _short(nonce, 8), "path": path, "ip": ip_address}
        if nym:
            details["nym"] = _short(nym)
        if reason:
            details["reason"] = reason
        self.log_event(event, **details)

    def log_guestbook_submission(self, nonce: str, nym: str, success: bool, reason: Optional[str] = None):
        """Log an authenticated guestbook submission."""
        event = "guestbook.message_submitted" if success else "guestbook.submit_failed"
        details = {"nonce": _short(nonce, 8), "nym": _short(nym)}
        if reason:
            details["reason"] = reason
        self.log_event(event, **details)

    def log_rate_limit_exceeded(self, ip_address: str, endpoint: str):
        """Log rate limit violation."""
        self.logger.warning(f"RATE_LIMIT_EXCEEDED | ip={ip_address} | endpoint={endpoint}")

    def log_error(self, error_type: str, error_msg: str, context: Optional[dict] = None):
        """Log application error."""
        msg = f"ERROR | type={error_type} | msg={error_msg}"
        if context:
            msg += f" | context={context}"
        self.logger.error(msg)

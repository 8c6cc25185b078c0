"""
Auth47-gated guestbook.

A submission is accepted only against a verified challenge whose stored
proof matches the one the client presents.  The challenge is claimed before
the message is written and consumed only after the write commits, so a failed
write leaves the authentication usable for a retry.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from bip47_terminal.audit_logger import get_audit_logger
from bip47_terminal.challenges import ChallengeStore
from bip47_terminal.database import Database
from bip47_terminal.models import GuestbookMessage
from bip47_terminal.paynym import PaynymClient

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()

REQUIRED_FIELDS = ("nonce", "message", "challenge", "signature", "nym")


class GuestbookError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class GuestbookUnavailable(GuestbookError):
    def __init__(self):
        super().__init__("Database not available", 503)


class GuestbookRepository:
    """Append-only message persistence."""

    def __init__(self, database: Database):
        self.database = database

    def add(self, **fields: Any) -> Dict[str, Any]:
        with self.database.session_scope() as session:
            entry = GuestbookMessage(verified=True, **fields)
            session.add(entry)
            session.flush()
            return entry.to_dict()

    def list_verified(self) -> List[Dict[str, Any]]:
        with self.database.session_scope() as session:
            rows = (
                session.query(GuestbookMessage)
                .filter(GuestbookMessage.verified.is_(True))
                .order_by(GuestbookMessage.created_at.desc())
                .all()
            )
            return [row.to_dict() for row in rows]


class Guestbook:
    def __init__(
        self,
        store: ChallengeStore,
        repository: Optional[GuestbookRepository],
        paynym: PaynymClient,
        max_message_length: int = 500,
    ):
        self.store = store
        self.repository = repository
        self.paynym = paynym
        self.max_message_length = max_message_length

    def messages(self) -> List[Dict[str, Any]]:
        if self.repository is None:
            raise GuestbookUnavailable()
        try:
            messages = self.repository.list_verified()
        except SQLAlchemyError as e:
            logger.error(f"Error fetching messages: {e}", exc_info=True)
            raise GuestbookError("Failed to fetch messages", 500) from e
        logger.info(f"Retrieved {len(messages)} messages")
        return messages

    def submit(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Record a message authenticated by a verified Auth47 challenge.

        Raises:
            GuestbookError: With the HTTP status the caller should answer with
        """
        fields = {name: data.get(name) for name in REQUIRED_FIELDS}
        if not all(isinstance(v, str) and v.strip() for v in fields.values()):
            raise GuestbookError("Missing required fields: " + ", ".join(REQUIRED_FIELDS))

        if self.repository is None:
            raise GuestbookUnavailable()

        nonce, nym = fields["nonce"], fields["nym"].strip()
        message = fields["message"].strip()
        if len(message) > self.max_message_length:
            raise GuestbookError(f"Message exceeds {self.max_message_length} characters")

        record = self.store.claim(nonce)
        if record is None:
            audit_logger.log_guestbook_submission(nonce, nym, success=False, reason="not_verified")
            raise GuestbookError("Invalid or expired authentication", 401)

        if (
            record.claimed_identity != nym
            or record.challenge_reference != fields["challenge"]
            or record.signature != fields["signature"]
        ):
            self.store.release(nonce)
            audit_logger.log_guestbook_submission(nonce, nym, success=False, reason="proof_mismatch")
            raise GuestbookError("Invalid or expired authentication", 401)

        logger.info(f"Submitting message from {nym}")
        try:
            profile = self.paynym.display_profile(nym)
            entry = self.repository.add(
                payment_code=nym,
                nym_name=profile["nymName"],
                nym_avatar=profile["nymAvatar"],
                message=message,
                signature=fields["signature"],
                nonce=nonce,
            )
        except SQLAlchemyError as e:
            self.store.release(nonce)
            logger.error(f"Error submitting message: {e}", exc_info=True)
            raise GuestbookError("Failed to submit message", 500) from e
        except Exception:
            self.store.release(nonce)
            raise

        # Only now is the authentication spent.
        self.store.consume(nonce)
        audit_logger.log_guestbook_submission(nonce, nym, success=True)
        logger.info(f"Message saved for {entry['nymName']}")
        return entry

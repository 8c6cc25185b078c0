"""
SQLAlchemy database models for the BIP47 Terminal.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Index, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def generate_uuid():
    """Generate a UUID string for primary keys."""
    return str(uuid.uuid4())


def utc_now():
    """Generate timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class GuestbookMessage(Base):
    """
    Guestbook entry signed in with Auth47.
    """

    __tablename__ = "guestbook_messages"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    payment_code = Column(String(128), nullable=False)
    nym_name = Column(String(255))
    nym_avatar = Column(Text)
    message = Column(Text, nullable=False)
    signature = Column(Text, nullable=False)
    verified = Column(Boolean, default=True, nullable=False)
    nonce = Column(String(64), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    __table_args__ = (
        Index("idx_guestbook_payment_code", "payment_code"),
        Index("idx_guestbook_created", "created_at"),
    )

    def to_dict(self):
        created_at = self.created_at
        if created_at is not None and created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return {
            "id": self.id,
            "paymentCode": self.payment_code,
            "nymName": self.nym_name,
            "nymAvatar": self.nym_avatar,
            "message": self.message,
            "signature": self.signature,
            "verified": self.verified,
            "nonce": self.nonce,
            "createdAt": created_at.isoformat() if created_at else None,
        }

    def __repr__(self):
        return f"<GuestbookMessage(id={self.id}, payment_code={self.payment_code[:16]}...)>"

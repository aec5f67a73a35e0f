"""
Confession model: one anonymous confession and its moderation/payment state.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Float, DateTime, Text, Boolean
from v4ult.database import Base


class ConfessionStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    POSTED = "posted"
    REVEALED = "revealed"
    REJECTED = "rejected"


class PaymentState(str, enum.Enum):
    UNPAID = "unpaid"
    PENDING = "pending"  # Proof submitted, awaiting admin reconciliation
    PAID = "paid"
    REFUNDED = "refunded"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


class Confession(Base):
    __tablename__ = "confessions"

    id = Column(String(36), primary_key=True, default=new_id)
    short_code = Column(String(16), unique=True, index=True, nullable=False)

    # Identity (admin only, except claimed_sender_name once paid)
    author_ref = Column(String(100), index=True, nullable=False)
    claimed_sender_name = Column(String(100), nullable=False)
    claimed_target_name = Column(String(100), nullable=False)
    sender_profile_ref = Column(String(255), nullable=True)  # Social/profile link from identity provider

    # Public content
    body = Column(Text, nullable=False)
    category = Column(String(30), nullable=False)  # vibe
    department = Column(String(100), nullable=True)
    display_alias = Column(String(60), nullable=False)

    # Moderation signals
    validation_score = Column(Integer, nullable=False, default=100)  # 0-100
    toxicity_score = Column(Float, nullable=False, default=0.0)  # 0.0-1.0
    toxicity_flagged = Column(Boolean, nullable=False, default=False)

    status = Column(String(20), nullable=False, default=ConfessionStatus.PENDING.value)
    payment_state = Column(String(20), nullable=False, default=PaymentState.UNPAID.value)
    payment_reference = Column(String(100), nullable=True)

    view_count = Column(Integer, nullable=False, default=0)
    last_viewed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    posted_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Confession {self.short_code} status={self.status} payment={self.payment_state}>"

"""
Payment proofs submitted by viewers before admin reconciliation.
"""

from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey
from v4ult.database import Base
from v4ult.models.confession import new_id, utcnow


class PaymentSubmission(Base):
    """A claimed external transaction reference for one confession."""
    __tablename__ = "payment_submissions"

    id = Column(String(36), primary_key=True, default=new_id)
    confession_id = Column(String(36), ForeignKey("confessions.id", ondelete="CASCADE"), index=True, nullable=False)

    external_ref = Column(String(100), index=True, nullable=False)  # e.g. UPI UTR
    amount = Column(Integer, nullable=False)
    payment_provider = Column(String(20), nullable=False, default="upi")
    viewer_email = Column(String(255), nullable=True)
    origin = Column(String(64), nullable=True)  # Client IP

    submitted_at = Column(DateTime(timezone=True), default=utcnow)
    reconciled = Column(Boolean, nullable=False, default=False)

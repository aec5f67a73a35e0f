from sqlalchemy import Column, Integer, String, DateTime, JSON, Text, ForeignKey
from v4ult.database import Base
from v4ult.models.confession import utcnow


class AnalyticsEvent(Base):
    __tablename__ = "analytics_events"

    id = Column(Integer, primary_key=True, index=True)
    event_name = Column(String(50), index=True, nullable=False)  # confession_created | reveal_search | ...
    event_metadata = Column(JSON, nullable=True)  # {"shortCode": "STC-AB12"}
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, index=True)
    confession_id = Column(String(36), ForeignKey("confessions.id", ondelete="CASCADE"), index=True, nullable=False)

    field = Column(String(20), nullable=False)  # status | payment_state
    old_value = Column(String(20), nullable=False)
    new_value = Column(String(20), nullable=False)
    note = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)

"""
Analytics events and aggregate statistics.
"""

from typing import Dict, Any, Optional
from sqlalchemy.orm import Session
from sqlalchemy import func

from v4ult.models.confession import Confession, ConfessionStatus, PaymentState
from v4ult.models.events import AnalyticsEvent
from v4ult.models.payment import PaymentSubmission

CONFESSION_CREATED = "confession_created"
REVEAL_SEARCH = "reveal_search"
PAYMENT_PROOF_SUBMITTED = "payment_proof_submitted"
PAYMENT_RECONCILED = "payment_reconciled"


def record_event(db: Session, event_name: str, metadata: Optional[Dict[str, Any]] = None) -> AnalyticsEvent:
    """
    Stage an analytics event in the caller's transaction.

    The caller commits, so the event is written together with the change it
    describes, or not at all.
    """
    event = AnalyticsEvent(event_name=event_name, event_metadata=metadata or {})
    db.add(event)
    return event


def get_public_stats(db: Session) -> Dict[str, Any]:
    """Ticker numbers for the landing page."""
    total = db.query(func.count(Confession.id)).scalar() or 0
    last_reveal = (
        db.query(func.max(AnalyticsEvent.created_at))
        .filter(AnalyticsEvent.event_name == REVEAL_SEARCH)
        .scalar()
    )
    return {
        "total_secrets": total,
        "last_reveal_at": last_reveal,
    }


def get_admin_stats(db: Session) -> Dict[str, Any]:
    """Moderation queue sizes and reconciled revenue."""
    by_status = dict(
        db.query(Confession.status, func.count(Confession.id))
        .group_by(Confession.status)
        .all()
    )
    by_payment = dict(
        db.query(Confession.payment_state, func.count(Confession.id))
        .group_by(Confession.payment_state)
        .all()
    )
    revenue = (
        db.query(func.coalesce(func.sum(PaymentSubmission.amount), 0))
        .filter(PaymentSubmission.reconciled.is_(True))
        .scalar()
    )
    unreconciled = (
        db.query(func.count(PaymentSubmission.id))
        .filter(PaymentSubmission.reconciled.is_(False))
        .scalar()
    )

    return {
        "status_counts": {s.value: by_status.get(s.value, 0) for s in ConfessionStatus},
        "payment_counts": {p.value: by_payment.get(p.value, 0) for p in PaymentState},
        "flagged_for_review": db.query(func.count(Confession.id))
        .filter(Confession.toxicity_flagged.is_(True))
        .scalar(),
        "unreconciled_payments": unreconciled or 0,
        "total_revenue": int(revenue or 0),
    }

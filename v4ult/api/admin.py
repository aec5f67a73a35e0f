"""
Admin API endpoints for the V4ULT console.

Includes:
- Full confession records and the moderation queue
- Status transitions (approve / post / reveal / reject)
- Payment reconciliation and refunds
- Stats and metrics
"""

from typing import Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from v4ult.api.dependencies import get_db, get_notifier, get_rate_limiter
from v4ult.api.security import require_admin
from v4ult.errors import ValidationError
from v4ult.models.confession import Confession, ConfessionStatus
from v4ult.pipelines import moderation
from v4ult.pipelines.payment_pipeline import list_payment_submissions
from v4ult.schemas.confession_schemas import (
    AdminConfession,
    AdminStats,
    AuditEventOut,
    MarkPaidRequest,
    NameCheckRequest,
    NameCheckResult,
    PaymentSubmissionOut,
    RefundRequest,
    StatusUpdateRequest,
)
from v4ult.services.analytics_service import get_admin_stats
from v4ult.services.name_validator import score_names
from v4ult.services.notification_service import Notifier, payment_reconciled_message
from v4ult.services.rate_limit_service import RateLimiter
from v4ult.utils.logging_config import metrics


router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)


# ============== CONFESSIONS ==============


@router.get("/confessions", response_model=List[AdminConfession])
def list_confessions(
    status: Optional[str] = None,
    flagged: Optional[bool] = None,
    db: Session = Depends(get_db),
):
    """All confessions, most viewed first."""
    query = db.query(Confession)
    if status:
        if status not in {s.value for s in ConfessionStatus}:
            raise ValidationError(f"Unknown status '{status}'")
        query = query.filter(Confession.status == status)
    if flagged is not None:
        query = query.filter(Confession.toxicity_flagged.is_(flagged))

    rows = query.order_by(Confession.view_count.desc(), Confession.created_at.desc()).all()
    return [AdminConfession.model_validate(row) for row in rows]


@router.get("/confessions/{short_code}", response_model=AdminConfession)
def get_confession(short_code: str, db: Session = Depends(get_db)):
    return AdminConfession.model_validate(moderation.get_by_short_code(db, short_code))


@router.post("/confessions/{short_code}/status", response_model=AdminConfession)
def update_status(
    short_code: str,
    request: StatusUpdateRequest,
    db: Session = Depends(get_db),
):
    """Move a confession through the moderation workflow."""
    confession = moderation.get_by_short_code(db, short_code)
    confession = moderation.transition_status(
        db,
        confession,
        request.status,
        override=request.override,
        note=request.note,
    )
    return AdminConfession.model_validate(confession)


@router.get("/confessions/{short_code}/audit", response_model=List[AuditEventOut])
def get_audit_trail(short_code: str, db: Session = Depends(get_db)):
    confession = moderation.get_by_short_code(db, short_code)
    return [AuditEventOut.model_validate(e) for e in moderation.audit_trail(db, confession)]


# ============== PAYMENTS ==============


@router.post("/confessions/{short_code}/mark-paid", response_model=AdminConfession)
def mark_paid(
    short_code: str,
    request: MarkPaidRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Confirm a payment and unlock the sender's identity."""
    confession = moderation.get_by_short_code(db, short_code)
    previous_state = confession.payment_state
    confession = moderation.mark_paid(db, confession, request.payment_ref, note=request.note)

    if confession.payment_state != previous_state:
        background_tasks.add_task(
            notifier.notify,
            payment_reconciled_message(confession.short_code, confession.payment_reference),
        )
    return AdminConfession.model_validate(confession)


@router.post("/confessions/{short_code}/refund", response_model=AdminConfession)
def refund(
    short_code: str,
    request: RefundRequest,
    db: Session = Depends(get_db),
):
    confession = moderation.get_by_short_code(db, short_code)
    confession = moderation.refund_payment(db, confession, note=request.note)
    return AdminConfession.model_validate(confession)


@router.get("/payments", response_model=List[PaymentSubmissionOut])
def list_payments(reconciled: Optional[bool] = None, db: Session = Depends(get_db)):
    """Payment proofs, newest first. ``reconciled=false`` is the work queue."""
    return [PaymentSubmissionOut.model_validate(p) for p in list_payment_submissions(db, reconciled)]


# ============== TOOLS ==============


@router.post("/names/check", response_model=Dict[str, NameCheckResult])
def check_names(request: NameCheckRequest):
    """Run the name plausibility scorer over a batch of names."""
    return {
        name: NameCheckResult(valid=result.valid, reason=result.reason, score=result.score)
        for name, result in score_names(request.names).items()
    }


# ============== STATS & METRICS ==============


@router.get("/stats", response_model=AdminStats)
def get_stats(db: Session = Depends(get_db)):
    return AdminStats(**get_admin_stats(db))


@router.get("/metrics")
def get_metrics(limiter: RateLimiter = Depends(get_rate_limiter)):
    """Current in-process metrics."""
    stats = metrics.get_stats()
    if hasattr(limiter, "get_stats"):
        stats["rate_limiter"] = limiter.get_stats()
    return stats


@router.post("/metrics/reset")
def reset_metrics():
    """Reset all metrics (use with caution)."""
    metrics.reset()
    return {"message": "Metrics reset"}

"""
Viewer-side payment proofs.

A viewer pays out of band (UPI) and submits the transaction reference here.
Nothing is unlocked by this step; an admin checks the reference and calls
``moderation.mark_paid``.
"""

from typing import List, Optional

from sqlalchemy.orm import Session

from v4ult.config import settings
from v4ult.errors import MissingField, ValidationError
from v4ult.models.payment import PaymentSubmission
from v4ult.pipelines.moderation import get_by_short_code, mark_payment_pending
from v4ult.schemas.confession_schemas import PaymentProofRequest
from v4ult.services.analytics_service import record_event, PAYMENT_PROOF_SUBMITTED
from v4ult.utils.logging_config import StructuredLogger, metrics

logger = StructuredLogger(__name__)

MAX_REF_LENGTH = 100


def submit_payment_proof(
    db: Session,
    short_code: str,
    proof: PaymentProofRequest,
    origin: Optional[str] = None,
) -> PaymentSubmission:
    confession = get_by_short_code(db, short_code)

    reference = (proof.payment_ref or "").strip()
    if not reference:
        raise MissingField("paymentRef")
    if len(reference) > MAX_REF_LENGTH:
        raise ValidationError(f"paymentRef must be at most {MAX_REF_LENGTH} characters")

    amount = settings.reveal_price if proof.amount is None else proof.amount
    if amount <= 0:
        raise ValidationError("amount must be positive")

    submission = PaymentSubmission(
        confession_id=confession.id,
        external_ref=reference,
        amount=amount,
        payment_provider=(proof.payment_provider or "upi").strip().lower(),
        viewer_email=(proof.viewer_email or "").strip() or None,
        origin=origin,
    )
    db.add(submission)
    moved = mark_payment_pending(db, confession, note=f"proof {reference}")
    record_event(db, PAYMENT_PROOF_SUBMITTED, {"shortCode": confession.short_code})

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(submission)

    metrics.increment("payments.proofs_submitted")
    logger.info(
        "Payment proof submitted",
        short_code=confession.short_code,
        amount=amount,
        payment_state_changed=moved,
    )
    return submission


def list_payment_submissions(
    db: Session,
    reconciled: Optional[bool] = None,
    limit: int = 200,
) -> List[PaymentSubmission]:
    query = db.query(PaymentSubmission)
    if reconciled is not None:
        query = query.filter(PaymentSubmission.reconciled.is_(reconciled))
    return query.order_by(PaymentSubmission.submitted_at.desc()).limit(limit).all()

"""
Moderation state machine.

Admin actions move a confession's ``status`` along an explicit allow-list and
reconcile its ``payment_state``. Every real change is written together with
an audit event; asking for the state a confession is already in succeeds
without writing anything.

    pending -> approved -> posted -> revealed
       |          |          |
       +----------+----------+--> rejected

Payment:

    unpaid -> pending (viewer proof) -> paid (admin, terminal)
    pending -> refunded (admin, terminal)
    unpaid -> paid (admin, without a proof on file)
"""

from typing import List, Optional, Set, Tuple

from sqlalchemy.orm import Session

from v4ult.errors import InvalidTransition, MissingField, NotFoundError, ValidationError
from v4ult.models.confession import Confession, ConfessionStatus, PaymentState, utcnow
from v4ult.models.events import AuditEvent
from v4ult.models.payment import PaymentSubmission
from v4ult.services.analytics_service import record_event, PAYMENT_RECONCILED
from v4ult.services.short_code_service import normalize_short_code
from v4ult.utils.logging_config import StructuredLogger, metrics

logger = StructuredLogger(__name__)

S = ConfessionStatus
P = PaymentState

ALLOWED_TRANSITIONS: Set[Tuple[str, str]] = {
    (S.PENDING.value, S.APPROVED.value),
    (S.PENDING.value, S.REJECTED.value),
    (S.APPROVED.value, S.POSTED.value),
    (S.APPROVED.value, S.REJECTED.value),
    (S.POSTED.value, S.REVEALED.value),
    (S.POSTED.value, S.REJECTED.value),
}

TERMINAL_STATUSES = {S.REVEALED.value, S.REJECTED.value}


def can_transition(old: str, new: str) -> bool:
    return old == new or (old, new) in ALLOWED_TRANSITIONS


def get_by_short_code(db: Session, short_code: str) -> Confession:
    code = normalize_short_code(short_code)
    confession = db.query(Confession).filter(Confession.short_code == code).first()
    if confession is None:
        raise NotFoundError(f"Confession {code} not found")
    return confession


def _audit(db: Session, confession: Confession, field: str, old: str, new: str, note: Optional[str]):
    db.add(AuditEvent(
        confession_id=confession.id,
        field=field,
        old_value=old,
        new_value=new,
        note=note,
    ))


def _commit(db: Session, confession: Confession) -> Confession:
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(confession)
    return confession


def transition_status(
    db: Session,
    confession: Confession,
    new_status: str,
    override: bool = False,
    note: Optional[str] = None,
) -> Confession:
    """
    Move ``confession`` to ``new_status``.

    Raises InvalidTransition for unknown statuses, pairs outside the
    allow-list, and posting a toxicity-flagged confession without
    ``override``.
    """
    old = confession.status
    new = (new_status or "").strip().lower()

    if new not in {s.value for s in ConfessionStatus}:
        raise ValidationError(f"Unknown status '{new_status}'")

    if old == new:
        return confession

    if not can_transition(old, new):
        metrics.increment("moderation.transitions.rejected")
        reason = "status is terminal" if old in TERMINAL_STATUSES else None
        raise InvalidTransition("status", old, new, reason)

    if new == S.POSTED.value and confession.toxicity_flagged and not override:
        metrics.increment("moderation.transitions.rejected")
        raise InvalidTransition("status", old, new, "flagged for toxicity; admin override required")

    confession.status = new
    if new == S.POSTED.value:
        confession.posted_at = utcnow()
    _audit(db, confession, "status", old, new, note)

    _commit(db, confession)
    metrics.increment(f"moderation.transitions.{new}")
    logger.info("Status changed", short_code=confession.short_code, old=old, new=new, override=override)
    return confession


def mark_payment_pending(db: Session, confession: Confession, note: Optional[str] = None) -> bool:
    """
    Viewer submitted a payment proof: ``unpaid -> pending``.

    Stages the change in the caller's transaction and returns whether the
    state moved. Any other payment state is left as it is.
    """
    if confession.payment_state != P.UNPAID.value:
        return False
    confession.payment_state = P.PENDING.value
    _audit(db, confession, "payment_state", P.UNPAID.value, P.PENDING.value, note)
    return True


def mark_paid(
    db: Session,
    confession: Confession,
    payment_reference: Optional[str],
    note: Optional[str] = None,
) -> Confession:
    """
    Admin confirmed the money arrived: record the reference and unlock the
    identity. Proofs carrying the same reference are marked reconciled.
    """
    reference = (payment_reference or "").strip()
    if not reference:
        raise MissingField("paymentRef")

    old = confession.payment_state
    if old == P.PAID.value:
        return confession
    if old == P.REFUNDED.value:
        raise InvalidTransition("payment_state", old, P.PAID.value, "payment was refunded")

    confession.payment_state = P.PAID.value
    confession.payment_reference = reference
    _audit(db, confession, "payment_state", old, P.PAID.value, note or f"ref {reference}")

    submissions: List[PaymentSubmission] = (
        db.query(PaymentSubmission)
        .filter(
            PaymentSubmission.confession_id == confession.id,
            PaymentSubmission.external_ref == reference,
            PaymentSubmission.reconciled.is_(False),
        )
        .all()
    )
    for submission in submissions:
        submission.reconciled = True

    record_event(db, PAYMENT_RECONCILED, {"shortCode": confession.short_code, "ref": reference})

    _commit(db, confession)
    metrics.increment("payments.reconciled")
    logger.info(
        "Payment reconciled",
        short_code=confession.short_code,
        ref=reference,
        proofs_reconciled=len(submissions),
    )
    return confession


def refund_payment(db: Session, confession: Confession, note: Optional[str] = None) -> Confession:
    """
    Refund a claimed payment that was never reconciled: ``pending -> refunded``.

    ``paid`` stays ``paid``; the identity has already been shown.
    """
    old = confession.payment_state
    if old == P.REFUNDED.value:
        return confession
    if old != P.PENDING.value:
        raise InvalidTransition("payment_state", old, P.REFUNDED.value, "only pending payments can be refunded")

    confession.payment_state = P.REFUNDED.value
    _audit(db, confession, "payment_state", old, P.REFUNDED.value, note)

    _commit(db, confession)
    metrics.increment("payments.refunded")
    logger.info("Payment refunded", short_code=confession.short_code)
    return confession


def audit_trail(db: Session, confession: Confession) -> List[AuditEvent]:
    return (
        db.query(AuditEvent)
        .filter(AuditEvent.confession_id == confession.id)
        .order_by(AuditEvent.created_at, AuditEvent.id)
        .all()
    )

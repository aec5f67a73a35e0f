"""
Disclosure gate: what a viewer holding a short code is allowed to see.

Only the sender's identity is monetised. The confession text, category and
alias are always shown; the claimed sender name appears once the
confession's payment state is ``paid``. Target name, scores and the author
reference never leave the admin console.
"""

import hashlib
from typing import Optional, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session

from v4ult.config import settings
from v4ult.errors import NotFoundError
from v4ult.models.confession import Confession, PaymentState, utcnow
from v4ult.schemas.confession_schemas import Artwork, RevealPreview, RevealPrice
from v4ult.services.analytics_service import record_event, REVEAL_SEARCH
from v4ult.services.short_code_service import normalize_short_code
from v4ult.utils.logging_config import StructuredLogger, metrics

logger = StructuredLogger(__name__)

LOCKED = "LOCKED"


def artwork_for(alias: str, category: str) -> Artwork:
    """Stable card colour per alias, so shared receipts look the same everywhere."""
    digest = hashlib.sha256(alias.encode()).hexdigest()
    return Artwork(alias=alias, category=category, accent=f"#{digest[:6]}")


def preview_for(
    confession: Confession,
    payment_state: Optional[str] = None,
    view_count: Optional[int] = None,
) -> RevealPreview:
    """Build the viewer response for ``confession`` under ``payment_state``."""
    state = payment_state or confession.payment_state
    preview = RevealPreview(
        short_code=confession.short_code,
        category=confession.category,
        department=confession.department,
        alias=confession.display_alias,
        artwork=artwork_for(confession.display_alias, confession.category),
        body=confession.body,
        view_count=confession.view_count if view_count is None else view_count,
        identity=LOCKED,
    )

    if state == PaymentState.PAID.value:
        preview.identity = confession.claimed_sender_name
        preview.profile = confession.sender_profile_ref
    else:
        preview.price = RevealPrice(amount=settings.reveal_price, currency=settings.reveal_currency)

    return preview


def is_unlocked(preview: RevealPreview) -> bool:
    return preview.identity != LOCKED


def lookup(db: Session, short_code: str) -> Tuple[Confession, RevealPreview]:
    """
    Count a view and return the preview.

    The increment is a single ``UPDATE ... RETURNING`` so concurrent lookups
    each see their own count; the returned count, not a re-read, goes into
    the preview.
    """
    code = normalize_short_code(short_code)

    stmt = (
        update(Confession)
        .where(Confession.short_code == code)
        .values(view_count=Confession.view_count + 1, last_viewed_at=utcnow())
        .returning(Confession.id, Confession.view_count)
        .execution_options(synchronize_session=False)
    )
    row = db.execute(stmt).first()
    if row is None:
        db.rollback()
        metrics.increment("reveal.lookups.not_found")
        raise NotFoundError(f"Confession {code} not found")

    confession_id, view_count = row
    record_event(db, REVEAL_SEARCH, {"shortCode": code})
    db.commit()

    confession = db.get(Confession, confession_id)
    preview = preview_for(confession, view_count=view_count)

    metrics.increment("reveal.lookups.unlocked" if is_unlocked(preview) else "reveal.lookups.locked")
    logger.info("Reveal lookup", short_code=code, view_count=view_count, unlocked=is_unlocked(preview))

    return confession, preview

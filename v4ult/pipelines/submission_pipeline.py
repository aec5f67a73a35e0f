from dataclasses import dataclass
from typing import Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from v4ult.config import settings
from v4ult.errors import (
    ConflictError,
    InvalidSenderName,
    InvalidTargetName,
    MissingFields,
    ToxicContent,
    UnverifiedAuthor,
    ValidationError,
)
from v4ult.models.confession import Confession, ConfessionStatus, PaymentState
from v4ult.schemas.confession_schemas import ConfessionCreateRequest
from v4ult.services.analytics_service import record_event, CONFESSION_CREATED
from v4ult.services.identity_service import IdentityProvider
from v4ult.services.name_validator import score_name
from v4ult.services.short_code_service import ShortCodeGenerator
from v4ult.services.toxicity_service import ToxicityClassifier
from v4ult.utils.logging_config import StructuredLogger, metrics, track_operation

logger = StructuredLogger(__name__)

# attribute -> name reported back to the client
REQUIRED_FIELDS: Dict[str, str] = {
    "claimed_sender_name": "claimedSenderName",
    "claimed_target_name": "claimedTargetName",
    "body": "body",
    "category": "category",
    "display_alias": "displayAlias",
    "author_ref": "authorRef",
}


@dataclass(frozen=True)
class SubmissionReceipt:
    """What the submitter gets back: never the stored names."""
    short_code: str
    alias: str


def _clean(value: Optional[str]) -> str:
    return value.strip() if isinstance(value, str) else ""


def _check_fields(payload: ConfessionCreateRequest) -> None:
    missing = [
        public_name
        for attr, public_name in REQUIRED_FIELDS.items()
        if not _clean(getattr(payload, attr))
    ]
    if missing:
        raise MissingFields(missing)

    category = _clean(payload.category)
    if category not in settings.categories_list:
        raise ValidationError(
            f"Invalid category '{category}'. Must be one of {settings.categories_list}."
        )
    if len(_clean(payload.body)) > settings.body_max_length:
        raise ValidationError(f"Message must be at most {settings.body_max_length} characters")
    if len(_clean(payload.display_alias)) > settings.alias_max_length:
        raise ValidationError(f"Alias must be at most {settings.alias_max_length} characters")


def short_code_exists(db: Session, code: str) -> bool:
    return db.query(Confession.id).filter(Confession.short_code == code).first() is not None


@track_operation("pipeline.submit")
def submit_confession(
    db: Session,
    payload: ConfessionCreateRequest,
    identity: IdentityProvider,
    classifier: ToxicityClassifier,
    code_generator: Optional[ShortCodeGenerator] = None,
) -> SubmissionReceipt:
    """
    Validate, score and persist a new confession.

    Short-circuits on the first failing step:
    fields -> author -> sender name -> target name -> toxicity -> short code.
    The confession and its creation event are committed together.
    """
    # 1) Mandatory fields
    _check_fields(payload)
    author_ref = _clean(payload.author_ref)

    # 2) Author verification; provider name beats the claimed one
    verification = identity.verify(author_ref)
    if not verification.verified:
        metrics.increment("confessions.rejected.unverified_author")
        raise UnverifiedAuthor(author_ref)

    sender_name = _clean(verification.authoritative_name) or _clean(payload.claimed_sender_name)
    target_name = _clean(payload.claimed_target_name)

    # 3) + 4) Name plausibility
    sender_check = score_name(sender_name)
    if not sender_check.valid:
        metrics.increment("confessions.rejected.sender_name")
        raise InvalidSenderName(sender_check.reason)

    target_check = score_name(target_name)
    if not target_check.valid:
        metrics.increment("confessions.rejected.target_name")
        raise InvalidTargetName(target_check.reason)

    # 5) Toxicity (the classifier fails open on its own)
    body = _clean(payload.body)
    toxicity = classifier.classify(body)
    if toxicity.toxic and settings.toxicity_auto_reject:
        metrics.increment("confessions.rejected.toxic")
        raise ToxicContent(max(toxicity.attributes.values(), default=toxicity.toxicity_score))

    flagged = toxicity.toxic or toxicity.toxicity_score > settings.toxicity_threshold

    # 6) Short code
    generator = code_generator or ShortCodeGenerator(exists=lambda code: short_code_exists(db, code))
    short_code = generator.generate()

    # 7) + 8) Persist with creation event, all or nothing
    confession = Confession(
        short_code=short_code,
        author_ref=author_ref,
        claimed_sender_name=sender_name,
        claimed_target_name=target_name,
        sender_profile_ref=verification.profile_ref,
        body=body,
        category=_clean(payload.category),
        department=_clean(payload.department) or None,
        display_alias=_clean(payload.display_alias),
        validation_score=sender_check.score,
        toxicity_score=toxicity.toxicity_score,
        toxicity_flagged=flagged,
        status=ConfessionStatus.PENDING.value,
        payment_state=PaymentState.UNPAID.value,
        view_count=0,
    )
    db.add(confession)
    record_event(db, CONFESSION_CREATED, {"shortCode": short_code, "category": confession.category})

    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.error("Short code collided at insert", short_code=short_code, error=str(e))
        raise ConflictError("Short code collision, please retry") from e
    except Exception:
        db.rollback()
        raise

    metrics.increment("confessions.created")
    if flagged:
        metrics.increment("confessions.flagged")

    logger.info(
        "Confession created",
        short_code=short_code,
        category=confession.category,
        validation_score=confession.validation_score,
        toxicity_flagged=flagged,
    )

    return SubmissionReceipt(short_code=short_code, alias=confession.display_alias)

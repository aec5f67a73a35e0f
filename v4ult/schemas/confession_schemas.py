from datetime import datetime
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Dict, List, Optional


class CamelModel(BaseModel):
    """JSON keys are camelCase on the wire; snake_case is accepted on input."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ============== PUBLIC ==============


class ConfessionCreateRequest(CamelModel):
    """New confession. Everything is optional here so the pipeline can report all missing fields at once."""
    author_ref: Optional[str] = None  # Identity provider user id
    claimed_sender_name: Optional[str] = None
    claimed_target_name: Optional[str] = None
    body: Optional[str] = None
    category: Optional[str] = None  # vibe
    display_alias: Optional[str] = None
    department: Optional[str] = None


class SubmissionResponse(CamelModel):
    short_code: str
    alias: str


class RevealPrice(CamelModel):
    amount: int
    currency: str


class Artwork(CamelModel):
    """Receipt card metadata, derived from the public alias only."""
    alias: str
    category: str
    accent: str  # "#rrggbb"


class RevealPreview(CamelModel):
    short_code: str
    category: str
    department: Optional[str] = None
    alias: str
    artwork: Artwork
    body: str
    view_count: int
    identity: str  # "LOCKED" until paid, then the sender's name
    profile: Optional[str] = None
    price: Optional[RevealPrice] = None


class PaymentProofRequest(CamelModel):
    payment_ref: Optional[str] = None  # Transaction id / UPI UTR
    amount: Optional[int] = None
    payment_provider: Optional[str] = "upi"
    viewer_email: Optional[str] = None


class PaymentProofResponse(CamelModel):
    session_id: str
    message: str


class MyConfession(CamelModel):
    """Sender dashboard row; no names."""
    short_code: str
    display_alias: str
    category: str
    department: Optional[str] = None
    status: str
    view_count: int
    created_at: Optional[datetime] = None
    last_viewed_at: Optional[datetime] = None


class PublicStats(CamelModel):
    total_secrets: int
    last_reveal_at: Optional[datetime] = None


# ============== ADMIN ==============


class AdminConfession(CamelModel):
    """Full record, admin console only."""
    id: str
    short_code: str
    author_ref: str
    claimed_sender_name: str
    claimed_target_name: str
    sender_profile_ref: Optional[str] = None
    body: str
    category: str
    department: Optional[str] = None
    display_alias: str
    validation_score: int
    toxicity_score: float
    toxicity_flagged: bool
    status: str
    payment_state: str
    payment_reference: Optional[str] = None
    view_count: int
    last_viewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    posted_at: Optional[datetime] = None


class StatusUpdateRequest(CamelModel):
    status: str
    override: bool = False  # Required to post a toxicity-flagged confession
    note: Optional[str] = None


class MarkPaidRequest(CamelModel):
    payment_ref: Optional[str] = None
    note: Optional[str] = None


class RefundRequest(CamelModel):
    note: Optional[str] = None


class PaymentSubmissionOut(CamelModel):
    id: str
    confession_id: str
    external_ref: str
    amount: int
    payment_provider: str
    viewer_email: Optional[str] = None
    origin: Optional[str] = None
    submitted_at: Optional[datetime] = None
    reconciled: bool


class AuditEventOut(CamelModel):
    field: str
    old_value: str
    new_value: str
    note: Optional[str] = None
    created_at: Optional[datetime] = None


class AdminStats(CamelModel):
    status_counts: Dict[str, int]
    payment_counts: Dict[str, int]
    flagged_for_review: int
    unreconciled_payments: int
    total_revenue: int


class NameCheckRequest(CamelModel):
    names: List[str]


class NameCheckResult(CamelModel):
    valid: bool
    reason: Optional[str] = None
    score: Optional[int] = None

import uuid
from typing import List, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from v4ult.config import settings
from v4ult.database import Base, engine
from v4ult.errors import NotFoundError, RateLimited, UpstreamError, V4ultError, ValidationError
from v4ult.models.confession import Confession
from v4ult.models import events, payment  # noqa: F401  (register tables)
from v4ult.schemas.confession_schemas import (
    ConfessionCreateRequest,
    MyConfession,
    PaymentProofRequest,
    PaymentProofResponse,
    PublicStats,
    SubmissionResponse,
)
from v4ult.api.admin import router as admin_router
from v4ult.api.dependencies import (
    get_db,
    get_identity_provider,
    get_notifier,
    get_rate_limiter,
    get_toxicity_classifier,
)
from v4ult.api.security import check_payment_rate_limit
from v4ult.pipelines.disclosure_gate import is_unlocked, lookup
from v4ult.pipelines.payment_pipeline import submit_payment_proof
from v4ult.pipelines.submission_pipeline import submit_confession
from v4ult.services.analytics_service import get_public_stats
from v4ult.services.identity_service import IdentityProvider
from v4ult.services.notification_service import Notifier, payment_proof_message
from v4ult.services.rate_limit_service import RateLimiter
from v4ult.services.toxicity_service import ToxicityClassifier
from v4ult.utils.logging_config import StructuredLogger, init_logging, request_id_var

# Initialize structured logging
init_logging()

logger = StructuredLogger(__name__)

Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="V4ULT API",
    version="0.1.0",
    description="Anonymous confessions with a paid identity reveal",
    docs_url="/docs" if settings.debug else None,  # Disable docs in production
    redoc_url="/redoc" if settings.debug else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


# Security headers middleware
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "no-referrer"
    if settings.is_production:
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response


# Request id middleware
@app.middleware("http")
async def add_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    token = request_id_var.set(request_id)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(V4ultError)
async def handle_domain_error(request: Request, exc: V4ultError):
    headers = {}
    if isinstance(exc, UpstreamError):
        logger.error("Upstream failure", provider=exc.provider, error=exc.message, path=request.url.path)
    elif isinstance(exc, RateLimited):
        headers["Retry-After"] = str(exc.retry_after)
    else:
        logger.info("Request rejected", error=type(exc).__name__, detail=exc.message, path=request.url.path)

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.public_message},
        headers=headers,
    )


app.include_router(admin_router)


@app.get("/health")
def health():
    """Health check endpoint - no auth, no DB."""
    return {"status": "ok"}


@app.get("/status")
def status_info():
    return {
        "status": "ok",
        "version": "0.1.0",
        "environment": settings.environment,
        "toxicity_provider": settings.toxicity_provider,
        "identity_provider": "supabase" if settings.supabase_configured else "none",
        "reveal_price": {"amount": settings.reveal_price, "currency": settings.reveal_currency},
        "payment_cooldown_seconds": settings.payment_cooldown_seconds,
    }


@app.post(
    "/api/v4ult/confessions",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_confession(
    payload: ConfessionCreateRequest,
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
    classifier: ToxicityClassifier = Depends(get_toxicity_classifier),
):
    """Submit an anonymous confession; answers with the receipt only."""
    receipt = submit_confession(db, payload, identity, classifier)
    return SubmissionResponse(short_code=receipt.short_code, alias=receipt.alias)


@app.get("/api/v4ult/reveal/{short_code}")
def reveal_preview(short_code: str, db: Session = Depends(get_db)):
    """
    Viewer lookup. 200 with the sender's name once paid, otherwise
    402 Payment Required with the locked preview and the price.
    """
    _, preview = lookup(db, short_code)
    return JSONResponse(
        status_code=status.HTTP_200_OK if is_unlocked(preview) else status.HTTP_402_PAYMENT_REQUIRED,
        content=preview.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


@app.post(
    "/api/v4ult/reveal/{short_code}/submit-payment",
    response_model=PaymentProofResponse,
    status_code=status.HTTP_201_CREATED,
)
def submit_payment(
    short_code: str,
    proof: PaymentProofRequest,
    background_tasks: BackgroundTasks,
    origin: str = Depends(check_payment_rate_limit),
    limiter: RateLimiter = Depends(get_rate_limiter),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Record a viewer's transaction reference for admin reconciliation."""
    try:
        submission = submit_payment_proof(db, short_code, proof, origin=origin)
    except (ValidationError, NotFoundError):
        # Typos and unknown codes don't count against the cooldown
        limiter.release(origin)
        raise

    code = short_code.strip().upper()
    background_tasks.add_task(
        notifier.notify,
        payment_proof_message(code, submission.external_ref, submission.amount),
    )

    return PaymentProofResponse(
        session_id=submission.id,
        message="Payment proof received. The identity unlocks once the payment is verified.",
    )


@app.get("/api/v4ult/my-confessions", response_model=List[MyConfession])
def my_confessions(
    author_ref: Optional[str] = Query(None, alias="authorRef"),
    db: Session = Depends(get_db),
):
    """Sender dashboard: the author's own confessions, newest first."""
    if not author_ref or not author_ref.strip():
        raise ValidationError("authorRef is required")

    rows = (
        db.query(Confession)
        .filter(Confession.author_ref == author_ref.strip())
        .order_by(Confession.created_at.desc())
        .all()
    )
    return [MyConfession.model_validate(row) for row in rows]


@app.get("/api/v4ult/stats", response_model=PublicStats)
def public_stats(db: Session = Depends(get_db)):
    return PublicStats(**get_public_stats(db))

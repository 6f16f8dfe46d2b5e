# app/api/deps.py
import hashlib
import hmac
from typing import Optional

from fastapi import Depends, Header, Query, Request
from sqlalchemy.orm import Session

from app.data.database import get_db
from app.domain.errors import PaymentSignatureError
from app.services.idempotency_service import IdempotencyService
from app.services.user_service import UserService
from app.utils import settings
from app.utils.logging import get_logger

logger = get_logger(__name__)


def current_user_id(
    user: str = Query(..., description="Tożsamość wywołującego (email albo id)"),
    db: Session = Depends(get_db),
) -> int:
    return UserService(db).resolve_user_id(user)


def optional_user_id(
    user: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
) -> Optional[int]:
    if user is None:
        return None
    return UserService(db).resolve_user_id(user)


def session_id_header(x_session_id: Optional[str] = Header(default=None)) -> Optional[str]:
    return x_session_id


def get_idempotency_service() -> Optional[IdempotencyService]:
    return IdempotencyService() if settings.IDEMPOTENCY_ENABLED else None


def sign_payment_body(body: bytes, secret: str) -> str:
    return hashlib.sha256(body + secret.encode()).hexdigest()


async def verify_payment_signature(
    request: Request,
    x_payment_signature: Optional[str] = Header(default=None),
) -> None:
    """Callback bramki musi byc podpisany wspolnym sekretem, inaczej 403."""
    secret = settings.PAYMENT_WEBHOOK_SECRET
    if not secret:
        logger.warning("Payment callback rejected: PAYMENT_WEBHOOK_SECRET is not configured")
        raise PaymentSignatureError("Payment callbacks are disabled")
    if not x_payment_signature:
        raise PaymentSignatureError("Missing payment signature")

    expected = sign_payment_body(await request.body(), secret)
    if not hmac.compare_digest(expected, x_payment_signature):
        logger.warning(f"Payment callback for {request.url.path} rejected: bad signature")
        raise PaymentSignatureError("Invalid payment signature")

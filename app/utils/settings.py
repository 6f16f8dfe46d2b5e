# app/utils/settings.py
import os
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./checkout.db")
REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://redis:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://redis:6379/2")
CELERY_TASK_ALWAYS_EAGER = _flag("CELERY_TASK_ALWAYS_EAGER")

#polityka wysylki, darmowa od progu
FREE_SHIPPING_THRESHOLD = Decimal(os.getenv("FREE_SHIPPING_THRESHOLD", "500.00"))
FLAT_SHIPPING_FEE = Decimal(os.getenv("FLAT_SHIPPING_FEE", "50.00"))
CURRENCY = os.getenv("CURRENCY", "USD")

IDEMPOTENCY_ENABLED = _flag("IDEMPOTENCY_ENABLED")
CHECKOUT_CLAIM_TTL_SECONDS = int(os.getenv("CHECKOUT_CLAIM_TTL_SECONDS", 30))

#podpis callbacku bramki: sha256(body + secret), pusty secret = wszystko odrzucane
PAYMENT_WEBHOOK_SECRET = os.getenv("PAYMENT_WEBHOOK_SECRET", "")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

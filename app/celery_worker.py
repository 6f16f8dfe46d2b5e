# app/celery_worker.py
from celery import Celery

from app.utils.settings import CELERY_BROKER_URL, CELERY_RESULT_BACKEND, CELERY_TASK_ALWAYS_EAGER

celery_app = Celery(
    "checkout",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# WAŻNE: Explicite importuj taski, żeby Celery je zarejestrował
celery_app.conf.imports = (
    "app.services.notification_service",
)

# testy i lokalne uruchomienie bez brokera
celery_app.conf.task_always_eager = CELERY_TASK_ALWAYS_EAGER
celery_app.conf.task_store_eager_result = False

celery_app.conf.timezone = "UTC"

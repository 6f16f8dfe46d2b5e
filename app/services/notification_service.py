# app/services/notification_service.py
from app.celery_worker import celery_app
from app.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Serwis do wysyłania powiadomień o zmianach zamówienia.
    Używa Celery do asynchronicznego przetwarzania.
    """

    @staticmethod
    def send_order_notification(user_id: int, order_id: str, status: str) -> bool:
        # zamowienie jest juz zapisane, brak brokera nie moze go cofnac
        try:
            send_order_notification_task.delay(user_id, order_id, str(status))
        except Exception as e:
            logger.warning(f"Failed to enqueue notification for order {order_id}: {e}")
            return False
        return True


@celery_app.task(name="app.services.notification_service.send_order_notification_task")
def send_order_notification_task(user_id: int, order_id: str, status: str):
    """
    Celery task - w prawdziwym systemie wysłałby email/SMS/push.
    Teraz tylko loguje.
    """
    logger.info(f"[NOTIFICATION] User {user_id}: Order {order_id} is now {status}")

    return {"user_id": user_id, "order_id": order_id, "status": status}

# app/services/notification_service.py
from decimal import Decimal

from app.celery_worker import celery_app
from app.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Powiadomienia o zamowieniach.
    Wysylka przez Celery, checkout nie czeka na wynik.
    """

    @staticmethod
    def send_order_notification(customer_id: str, order_id: str, total: Decimal):
        send_order_notification_task.delay(customer_id, order_id, str(total))


@celery_app.task(name="app.services.notification_service.send_order_notification_task")
def send_order_notification_task(customer_id: str, order_id: str, total: str):
    """
    Celery task - docelowo email/SMS, teraz tylko loguje.
    """
    logger.info(f"[NOTIFICATION] Customer {customer_id}: Order {order_id} placed, total {total}")

    return {"customer_id": customer_id, "order_id": order_id, "total": total, "status": "sent"}

from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.logging_config import get_logger
from app.models.admin_notification import AdminNotification
from app.models.enums import NotificationType

logger = get_logger("notification")


class NotificationEmitter(Protocol):
    def notify(self, booking_id: int | None, type: NotificationType, title: str, message: str) -> None: ...


class DbNotificationEmitter:
    """Appends admin notifications on the caller's session.

    Call only after the transition itself is committed: a failure here rolls
    back the notification alone and is logged, never raised.
    """

    def __init__(self, db: Session):
        self.db = db

    def notify(self, booking_id, type, title, message):
        try:
            self.db.add(AdminNotification(
                booking_id=booking_id,
                type=type,
                title=title,
                message=message,
                read=False,
            ))
            self.db.commit()
            logger.info(f"{type.value} | booking={booking_id} | {title}")
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Failed to store notification {type.value} for booking={booking_id}")

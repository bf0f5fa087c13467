from typing import Optional
from sqlalchemy import update
from campus_events.extensions import db
from campus_events.models import Notification
from campus_events.models.enums import NotificationStatus, NotificationType
from campus_events.utils.pagination import paginate
from campus_events.utils.time import utcnow


class NotificationRepository:
    @staticmethod
    def create_notification(attrs) -> Notification:
        notification = Notification(**attrs)
        db.session.add(notification)
        db.session.flush()
        return notification

    @staticmethod
    def get_notification(notification_id: int) -> Optional[Notification]:
        return Notification.query.filter_by(id=notification_id).first()

    @staticmethod
    def find_by_user(
        user_id: int,
        status: NotificationStatus = None,
        notification_type: NotificationType = None,
        page: int = 1,
        limit: int = 20,
    ):
        query = Notification.query.filter(Notification.user_id == user_id)
        if status is not None:
            query = query.filter(Notification.status == status)
        else:
            # Archived notifications only show up when asked for explicitly
            query = query.filter(Notification.status != NotificationStatus.ARCHIVED)
        if notification_type is not None:
            query = query.filter(Notification.type == notification_type)
        query = query.order_by(Notification.created_at.desc(), Notification.id.desc())
        return paginate(query, page, limit)

    @staticmethod
    def get_unread_count(user_id: int) -> int:
        return Notification.query.filter_by(
            user_id=user_id, status=NotificationStatus.UNREAD
        ).count()

    @staticmethod
    def exists_for_user_and_event(user_id: int, event_id: int, notification_type: NotificationType) -> bool:
        return (
            db.session.query(Notification.id)
            .filter_by(user_id=user_id, event_id=event_id, type=notification_type)
            .first()
            is not None
        )

    @staticmethod
    def mark_as_read(notification: Notification) -> Notification:
        if notification.status == NotificationStatus.UNREAD:
            notification.status = NotificationStatus.READ
            notification.read_at = utcnow()
            db.session.flush()
        return notification

    @staticmethod
    def mark_all_as_read(user_id: int) -> int:
        result = db.session.execute(
            update(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.status == NotificationStatus.UNREAD,
            )
            .values(status=NotificationStatus.READ, read_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @staticmethod
    def archive(notification: Notification) -> Notification:
        notification.status = NotificationStatus.ARCHIVED
        notification.archived_at = utcnow()
        db.session.flush()
        return notification

    @staticmethod
    def delete(notification: Notification):
        db.session.delete(notification)
        db.session.flush()

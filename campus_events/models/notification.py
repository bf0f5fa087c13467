from campus_events.extensions import db
from campus_events.utils.time import isoformat
from .enums import NotificationStatus, NotificationType


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    type = db.Column(db.Enum(NotificationType), nullable=False, index=True)
    status = db.Column(
        db.Enum(NotificationStatus),
        nullable=False,
        default=NotificationStatus.UNREAD,
        index=True,
    )
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.String(1000), nullable=False)
    event_id = db.Column(
        db.Integer, db.ForeignKey("events.id", ondelete="SET NULL"), nullable=True, index=True
    )
    registration_id = db.Column(
        db.Integer,
        db.ForeignKey("event_registrations.id", ondelete="SET NULL"),
        nullable=True,
    )
    action_url = db.Column(db.String(500), nullable=True)
    read_at = db.Column(db.TIMESTAMP(timezone=True), nullable=True)
    archived_at = db.Column(db.TIMESTAMP(timezone=True), nullable=True)
    # Resolved template variables
    data = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(
        db.TIMESTAMP(timezone=True), nullable=False, server_default=db.func.now()
    )

    __table_args__ = (
        db.Index("ix_notifications_user_status", "user_id", "status"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type.value if self.type else None,
            "status": self.status.value if self.status else None,
            "title": self.title,
            "message": self.message,
            "event_id": self.event_id,
            "registration_id": self.registration_id,
            "action_url": self.action_url,
            "read_at": isoformat(self.read_at),
            "archived_at": isoformat(self.archived_at),
            "data": self.data or {},
            "created_at": isoformat(self.created_at),
        }

    def __repr__(self):
        return f"<Notification id={self.id} user_id={self.user_id} type={self.type}>"

from campus_events.extensions import db
from campus_events.utils.time import isoformat
from .enums import RegistrationStatus, ACTIVE_REGISTRATION_STATUSES


class EventRegistration(db.Model):
    __tablename__ = "event_registrations"

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(
        db.Integer, db.ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    status = db.Column(
        db.Enum(RegistrationStatus),
        nullable=False,
        default=RegistrationStatus.REGISTERED,
        index=True,
    )
    registered_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False)
    cancelled_at = db.Column(db.TIMESTAMP(timezone=True), nullable=True)
    attended_at = db.Column(db.TIMESTAMP(timezone=True), nullable=True)
    waitlist_position = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.String(500), nullable=True)
    created_at = db.Column(
        db.TIMESTAMP(timezone=True), nullable=False, server_default=db.func.now()
    )
    updated_at = db.Column(
        db.TIMESTAMP(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # Relationships
    event = db.relationship(
        "Event", backref=db.backref("registrations", lazy="dynamic", passive_deletes=True)
    )
    user = db.relationship(
        "User", backref=db.backref("event_registrations", lazy="dynamic")
    )

    # One record per (user, event); cancelled records are reused on re-registration
    __table_args__ = (
        db.UniqueConstraint("user_id", "event_id", name="uq_event_registration_user_event"),
        db.CheckConstraint(
            "waitlist_position IS NULL OR waitlist_position >= 1",
            name="ck_event_registrations_position_positive",
        ),
        db.Index("ix_event_registrations_event_status", "event_id", "status"),
    )

    @property
    def is_active(self):
        return self.status in ACTIVE_REGISTRATION_STATUSES

    def to_dict(self, include_event=False, include_user=False):
        data = {
            "id": self.id,
            "event_id": self.event_id,
            "user_id": self.user_id,
            "status": self.status.value if self.status else None,
            "registered_at": isoformat(self.registered_at),
            "cancelled_at": isoformat(self.cancelled_at),
            "attended_at": isoformat(self.attended_at),
            "waitlist_position": self.waitlist_position,
            "notes": self.notes,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
        if include_event and self.event is not None:
            data["event"] = self.event.to_dict()
        if include_user and self.user is not None:
            data["user"] = self.user.to_public_dict()
        return data

    def __repr__(self):
        return (
            f"EventRegistration("
            f"id={self.id}, "
            f"event_id={self.event_id}, "
            f"user_id={self.user_id}, "
            f"status={self.status}, "
            f"waitlist_position={self.waitlist_position}, "
            f"registered_at={self.registered_at}"
            f")"
        )

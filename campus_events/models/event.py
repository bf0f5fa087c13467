from campus_events.extensions import db
from campus_events.utils.time import isoformat
from .enums import EventCategory, EventStatus


class Event(db.Model):
    __tablename__ = "events"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.Enum(EventCategory), nullable=True)
    organizer_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    start_date = db.Column(db.TIMESTAMP(timezone=True), nullable=False)
    end_date = db.Column(db.TIMESTAMP(timezone=True), nullable=False)

    # Location is flattened into columns and rendered as a nested object
    location_name = db.Column(db.String(200), nullable=True)
    location_address = db.Column(db.String(500), nullable=True)
    location_is_virtual = db.Column(db.Boolean, nullable=False, default=False)
    location_virtual_link = db.Column(db.String(500), nullable=True)

    max_registrations = db.Column(db.Integer, nullable=True)  # None = unlimited
    current_registrations = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(
        db.Enum(EventStatus), nullable=False, default=EventStatus.DRAFT, index=True
    )
    is_public = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(
        db.TIMESTAMP(timezone=True), nullable=False, server_default=db.func.now()
    )
    updated_at = db.Column(
        db.TIMESTAMP(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    organizer = db.relationship("User", backref=db.backref("organized_events", lazy="dynamic"))

    __table_args__ = (
        db.CheckConstraint(
            "current_registrations >= 0", name="ck_events_current_non_negative"
        ),
        db.CheckConstraint(
            "max_registrations IS NULL OR max_registrations >= 0",
            name="ck_events_max_non_negative",
        ),
        db.CheckConstraint(
            "max_registrations IS NULL OR current_registrations <= max_registrations",
            name="ck_events_current_within_capacity",
        ),
        db.Index("ix_events_status_start_date", "status", "start_date"),
    )

    @property
    def location(self):
        return {
            "name": self.location_name,
            "address": self.location_address,
            "is_virtual": bool(self.location_is_virtual),
            "virtual_link": self.location_virtual_link,
        }

    @property
    def available_spots(self):
        if self.max_registrations is None:
            return None
        return max(0, self.max_registrations - self.current_registrations)

    @property
    def is_full(self):
        if self.max_registrations is None:
            return False
        return self.current_registrations >= self.max_registrations

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category.value if self.category else None,
            "organizer_id": self.organizer_id,
            "start_date": isoformat(self.start_date),
            "end_date": isoformat(self.end_date),
            "location": self.location,
            "max_registrations": self.max_registrations,
            "current_registrations": self.current_registrations,
            "available_spots": self.available_spots,
            "status": self.status.value if self.status else None,
            "is_public": self.is_public,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }

    def __repr__(self):
        return (
            f"Event("
            f"id={self.id}, "
            f"title='{self.title}', "
            f"status={self.status}, "
            f"registrations={self.current_registrations}/{self.max_registrations}"
            f")"
        )

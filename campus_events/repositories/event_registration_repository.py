from typing import List, Optional
from sqlalchemy import func
from campus_events.extensions import db
from campus_events.models import EventRegistration
from campus_events.models.enums import RegistrationStatus, ACTIVE_REGISTRATION_STATUSES
from campus_events.utils.pagination import paginate


class EventRegistrationRepository:
    @staticmethod
    def get_registration(registration_id: int) -> Optional[EventRegistration]:
        return EventRegistration.query.filter_by(id=registration_id).first()

    @staticmethod
    def find_by_user_and_event(user_id: int, event_id: int) -> Optional[EventRegistration]:
        """Find the (single) registration record for a user and event, any status."""
        return EventRegistration.query.filter_by(user_id=user_id, event_id=event_id).first()

    @staticmethod
    def find_active_by_user_and_event(user_id: int, event_id: int) -> Optional[EventRegistration]:
        return EventRegistration.query.filter(
            EventRegistration.user_id == user_id,
            EventRegistration.event_id == event_id,
            EventRegistration.status.in_(ACTIVE_REGISTRATION_STATUSES),
        ).first()

    @staticmethod
    def find_active_by_event(event_id: int) -> List[EventRegistration]:
        return (
            EventRegistration.query.filter(
                EventRegistration.event_id == event_id,
                EventRegistration.status.in_(ACTIVE_REGISTRATION_STATUSES),
            )
            .order_by(EventRegistration.registered_at.asc(), EventRegistration.id.asc())
            .all()
        )

    @staticmethod
    def find_registered_by_event(event_id: int) -> List[EventRegistration]:
        return (
            EventRegistration.query.filter_by(
                event_id=event_id, status=RegistrationStatus.REGISTERED
            )
            .order_by(EventRegistration.registered_at.asc(), EventRegistration.id.asc())
            .all()
        )

    @staticmethod
    def find_by_event(event_id: int, status: RegistrationStatus = None, page: int = 1, limit: int = 100):
        query = EventRegistration.query.filter(EventRegistration.event_id == event_id)
        if status is not None:
            query = query.filter(EventRegistration.status == status)
        query = query.order_by(EventRegistration.registered_at.asc(), EventRegistration.id.asc())
        return paginate(query, page, limit)

    @staticmethod
    def find_by_user(user_id: int, status: RegistrationStatus = None, page: int = 1, limit: int = 50):
        query = EventRegistration.query.filter(EventRegistration.user_id == user_id)
        if status is not None:
            query = query.filter(EventRegistration.status == status)
        query = query.order_by(EventRegistration.created_at.desc(), EventRegistration.id.desc())
        return paginate(query, page, limit)

    @staticmethod
    def create_registration(attrs) -> EventRegistration:
        registration = EventRegistration(**attrs)
        db.session.add(registration)
        db.session.flush()
        return registration

    @staticmethod
    def count_by_event(event_id: int) -> int:
        """Count every record for an event, cancelled ones included."""
        return EventRegistration.query.filter_by(event_id=event_id).count()

    @staticmethod
    def count_by_event_and_status(event_id: int, statuses: List[RegistrationStatus]) -> int:
        return (
            EventRegistration.query.filter(EventRegistration.event_id == event_id)
            .filter(EventRegistration.status.in_(statuses))
            .count()
        )

    @staticmethod
    def get_next_waitlist_position(event_id: int) -> int:
        max_position = (
            db.session.query(func.max(EventRegistration.waitlist_position))
            .filter(
                EventRegistration.event_id == event_id,
                EventRegistration.status == RegistrationStatus.WAITLISTED,
            )
            .scalar()
        )
        return (max_position or 0) + 1

    @staticmethod
    def get_first_waitlisted(event_id: int) -> Optional[EventRegistration]:
        """The waitlisted record next in line: lowest position, then earliest registration."""
        return (
            EventRegistration.query.filter_by(
                event_id=event_id, status=RegistrationStatus.WAITLISTED
            )
            .order_by(
                EventRegistration.waitlist_position.asc(),
                EventRegistration.registered_at.asc(),
                EventRegistration.id.asc(),
            )
            .with_for_update()
            .first()
        )

    @staticmethod
    def recalculate_waitlist_positions(event_id: int) -> int:
        """Renumber the waitlist 1..N in registration order.

        Only rows whose position changes are written. Returns the number of
        rows updated.
        """
        waitlisted = (
            EventRegistration.query.filter_by(
                event_id=event_id, status=RegistrationStatus.WAITLISTED
            )
            .order_by(EventRegistration.registered_at.asc(), EventRegistration.id.asc())
            .with_for_update()
            .all()
        )
        changed = 0
        for position, registration in enumerate(waitlisted, start=1):
            if registration.waitlist_position != position:
                registration.waitlist_position = position
                changed += 1
        if changed:
            db.session.flush()
        return changed

    @staticmethod
    def get_event_registration_stats(event_id: int) -> dict:
        rows = (
            db.session.query(EventRegistration.status, func.count(EventRegistration.id))
            .filter(EventRegistration.event_id == event_id)
            .group_by(EventRegistration.status)
            .all()
        )
        stats = {status.value.lower(): 0 for status in RegistrationStatus}
        stats["total"] = 0
        for status, count in rows:
            stats[status.value.lower()] = count
            stats["total"] += count
        return stats

from datetime import datetime
from sqlalchemy import or_, update
from campus_events.extensions import db
from campus_events.models import Event
from campus_events.models.enums import EventStatus
from campus_events.utils.pagination import paginate


class EventRepository:
    @staticmethod
    def get_events():
        return Event.query

    @staticmethod
    def get_event(event_id: int) -> Event:
        return Event.query.filter_by(id=event_id).first()

    @staticmethod
    def get_event_for_update(event_id: int) -> Event:
        """Load an event and lock its row until the current transaction ends."""
        return Event.query.filter_by(id=event_id).with_for_update().first()

    @staticmethod
    def create_event(attrs):
        event = Event(**attrs)
        db.session.add(event)
        db.session.flush()
        return event

    @staticmethod
    def update_event(event: Event, attrs: dict):
        for key, value in attrs.items():
            if hasattr(event, key):
                setattr(event, key, value)
        db.session.flush()
        return event

    @staticmethod
    def delete_event(event: Event):
        db.session.delete(event)
        db.session.flush()

    @staticmethod
    def is_organizer(event: Event, user_id: int) -> bool:
        return event is not None and str(event.organizer_id) == str(user_id)

    @staticmethod
    def increment_registrations(event: Event) -> bool:
        """Atomically take one seat if the event is below capacity.

        Returns False when the event is full; the counter is left untouched.
        """
        result = db.session.execute(
            update(Event)
            .where(
                Event.id == event.id,
                or_(
                    Event.max_registrations.is_(None),
                    Event.current_registrations < Event.max_registrations,
                ),
            )
            .values(current_registrations=Event.current_registrations + 1)
            .execution_options(synchronize_session=False)
        )
        db.session.expire(event, ["current_registrations", "updated_at"])
        return result.rowcount == 1

    @staticmethod
    def decrement_registrations(event: Event) -> bool:
        result = db.session.execute(
            update(Event)
            .where(Event.id == event.id, Event.current_registrations > 0)
            .values(current_registrations=Event.current_registrations - 1)
            .execution_options(synchronize_session=False)
        )
        db.session.expire(event, ["current_registrations", "updated_at"])
        return result.rowcount == 1

    @staticmethod
    def update_status(event: Event, from_status: EventStatus, to_status: EventStatus) -> bool:
        """Compare-and-set the status; False if another writer moved it first."""
        result = db.session.execute(
            update(Event)
            .where(Event.id == event.id, Event.status == from_status)
            .values(status=to_status)
            .execution_options(synchronize_session=False)
        )
        db.session.expire(event, ["status", "updated_at"])
        return result.rowcount == 1

    @staticmethod
    def find_published(filters: dict, page: int = 1, limit: int = 20):
        query = Event.query.filter(
            Event.status == EventStatus.PUBLISHED, Event.is_public.is_(True)
        )
        category = filters.get("category")
        if category is not None:
            query = query.filter(Event.category == category)
        starts_after = filters.get("starts_after")
        if starts_after is not None:
            query = query.filter(Event.start_date > starts_after)
        return paginate(query.order_by(Event.start_date.asc(), Event.id.asc()), page, limit)

    @staticmethod
    def find_by_organizer(organizer_id: int, status: EventStatus = None, page: int = 1, limit: int = 20):
        query = Event.query.filter(Event.organizer_id == organizer_id)
        if status is not None:
            query = query.filter(Event.status == status)
        return paginate(query.order_by(Event.start_date.desc(), Event.id.desc()), page, limit)

    @staticmethod
    def find_events_to_start(now: datetime):
        return (
            Event.query.filter(
                Event.status == EventStatus.PUBLISHED,
                Event.start_date <= now,
                Event.end_date > now,
            )
            .order_by(Event.start_date.asc(), Event.id.asc())
            .all()
        )

    @staticmethod
    def find_events_to_complete(now: datetime):
        return (
            Event.query.filter(
                Event.status == EventStatus.IN_PROGRESS,
                Event.end_date < now,
            )
            .order_by(Event.end_date.asc(), Event.id.asc())
            .all()
        )

    @staticmethod
    def find_starting_between(start: datetime, end: datetime):
        """Published events starting in ``(start, end]``."""
        return (
            Event.query.filter(
                Event.status == EventStatus.PUBLISHED,
                Event.start_date > start,
                Event.start_date <= end,
            )
            .order_by(Event.start_date.asc())
            .all()
        )

from datetime import timedelta
from flask import current_app
from campus_events.extensions import db
from campus_events.exceptions import (
    ConflictError,
    ForbiddenError,
    MissingFieldsError,
    NotFoundError,
    ValidationError,
)
from campus_events.models.enums import EventCategory, EventStatus
from campus_events.repositories.event_repository import EventRepository
from campus_events.repositories.event_registration_repository import EventRegistrationRepository
from campus_events.repositories.user_repository import UserRepository
from campus_events.services.notification_service import NotificationService
from campus_events.services.registration_service import RegistrationService
from campus_events.utils.dispatch import dispatch
from campus_events.utils.time import as_utc, parse_datetime, utcnow

MIN_SAME_DAY_DURATION = timedelta(minutes=30)

LOCATION_FIELDS = {
    "name": "location_name",
    "address": "location_address",
    "is_virtual": "location_is_virtual",
    "virtual_link": "location_virtual_link",
}


class EventService:
    STATUS_TRANSITIONS = {
        EventStatus.DRAFT: [EventStatus.PUBLISHED, EventStatus.CANCELLED],
        EventStatus.PUBLISHED: [EventStatus.IN_PROGRESS, EventStatus.CANCELLED],
        EventStatus.IN_PROGRESS: [EventStatus.COMPLETED, EventStatus.CANCELLED],
        EventStatus.CANCELLED: [],
        EventStatus.COMPLETED: [],
    }

    # ----- Validation -----

    @staticmethod
    def validate_event_dates(start_date, end_date, require_future_start: bool = True):
        """Multi-day events compare calendar dates; same-day events need 30 minutes."""
        start = as_utc(start_date)
        end = as_utc(end_date)

        if require_future_start and start <= utcnow():
            raise ValidationError("Event start date must be in the future")

        if start.date() != end.date():
            if end.date() < start.date():
                raise ValidationError(
                    f"End date ({end.date().isoformat()}) must be after start date ({start.date().isoformat()})"
                )
            return

        if end <= start:
            raise ValidationError("End time must be after start time for same-day events")
        if end - start < MIN_SAME_DAY_DURATION:
            raise ValidationError("Event must be at least 30 minutes long")

    @staticmethod
    def validate_status_transition(current_status: EventStatus, new_status: EventStatus):
        allowed = EventService.STATUS_TRANSITIONS.get(current_status, [])
        if new_status not in allowed:
            allowed_names = ", ".join(s.value for s in allowed) if allowed else "none"
            raise ValidationError(
                f"Cannot transition from {current_status.value} to {new_status.value}. "
                f"Allowed transitions: {allowed_names}"
            )

    @staticmethod
    def validate_publish_requirements(attrs: dict):
        """``attrs`` uses column names, as produced by ``_parse_event_data``."""
        required = [
            ("title", "title"),
            ("description", "description"),
            ("start_date", "start_date"),
            ("end_date", "end_date"),
            ("location_name", "location.name"),
            ("category", "category"),
        ]
        missing = [label for key, label in required if not attrs.get(key)]
        if attrs.get("location_is_virtual") and not attrs.get("location_virtual_link"):
            missing.append("location.virtual_link")

        if missing:
            raise ValidationError(
                f"Cannot publish event. Missing required fields: {', '.join(missing)}",
                errors=missing,
            )

    @staticmethod
    def _parse_event_data(data: dict) -> dict:
        """Map a request payload onto Event column values."""
        attrs = {}

        if "title" in data:
            title = (data.get("title") or "").strip()
            if not 3 <= len(title) <= 200:
                raise ValidationError("Title must be between 3 and 200 characters")
            attrs["title"] = title

        if "description" in data:
            attrs["description"] = data.get("description")

        if "category" in data:
            category = data.get("category")
            if category is None:
                attrs["category"] = None
            else:
                match = next(
                    (c for c in EventCategory if category in (c.value, c.name)), None
                )
                if match is None:
                    valid = ", ".join(c.value for c in EventCategory)
                    raise ValidationError(f"Invalid category. Must be one of: {valid}")
                attrs["category"] = match

        for key in ("start_date", "end_date"):
            if key in data:
                try:
                    attrs[key] = parse_datetime(data.get(key))
                except ValueError:
                    raise ValidationError("Invalid start or end date")

        location = data.get("location")
        if location is not None:
            if not isinstance(location, dict):
                raise ValidationError("Location must be an object")
            for field, column in LOCATION_FIELDS.items():
                if field in location:
                    attrs[column] = location[field]
            if "location_is_virtual" in attrs:
                attrs["location_is_virtual"] = bool(attrs["location_is_virtual"])

        if "max_registrations" in data:
            max_registrations = data.get("max_registrations")
            if max_registrations is not None:
                if isinstance(max_registrations, bool) or not isinstance(max_registrations, int):
                    raise ValidationError("max_registrations must be an integer or null")
                if max_registrations < 0:
                    raise ValidationError("max_registrations cannot be negative")
            attrs["max_registrations"] = max_registrations

        if "status" in data:
            try:
                attrs["status"] = EventStatus(data.get("status"))
            except ValueError:
                valid = ", ".join(s.value for s in EventStatus)
                raise ValidationError(f"Invalid status. Must be one of: {valid}")

        if "is_public" in data:
            attrs["is_public"] = bool(data.get("is_public"))

        return attrs

    @staticmethod
    def _event_attrs(event) -> dict:
        return {
            "title": event.title,
            "description": event.description,
            "category": event.category,
            "start_date": event.start_date,
            "end_date": event.end_date,
            "location_name": event.location_name,
            "location_address": event.location_address,
            "location_is_virtual": event.location_is_virtual,
            "location_virtual_link": event.location_virtual_link,
        }

    @staticmethod
    def _get_owned_event(event_id: int, user_id: int, action: str):
        event = EventRepository.get_event(event_id)
        if not event:
            raise NotFoundError("Event not found")
        if not EventRepository.is_organizer(event, user_id):
            raise ForbiddenError(f"You do not have permission to {action} this event")
        return event

    # ----- State machine -----

    @staticmethod
    def transition_status(event, new_status: EventStatus):
        """Validate and apply a status change with compare-and-set.

        Flushes only; the caller commits.
        """
        current_status = event.status
        EventService.validate_status_transition(current_status, new_status)
        if not EventRepository.update_status(event, current_status, new_status):
            raise ConflictError(
                f"Event {event.id} changed status concurrently; expected {current_status.value}"
            )
        current_app.logger.info(
            f"Event {event.id} transitioned {current_status.value} -> {new_status.value}"
        )
        return event

    # ----- Commands -----

    @staticmethod
    def create_event(data: dict, organizer_id: int):
        user = UserRepository.find_by_id(organizer_id)
        if not user or not user.can_organize:
            raise ForbiddenError("Only organizers can create events")

        missing = [f for f in ("title", "start_date", "end_date") if not data.get(f)]
        if missing:
            raise MissingFieldsError(missing)

        attrs = EventService._parse_event_data(data)
        attrs.setdefault("status", EventStatus.DRAFT)
        if attrs["status"] not in (EventStatus.DRAFT, EventStatus.PUBLISHED):
            raise ValidationError("New events can only be created as DRAFT or PUBLISHED")

        EventService.validate_event_dates(attrs["start_date"], attrs["end_date"])
        if attrs["status"] == EventStatus.PUBLISHED:
            EventService.validate_publish_requirements(attrs)

        attrs["organizer_id"] = user.id
        attrs["current_registrations"] = 0
        try:
            event = EventRepository.create_event(attrs)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        current_app.logger.info(f"Organizer {user.id} created event {event.id} ({event.status.value})")
        if event.status == EventStatus.PUBLISHED:
            dispatch(NotificationService.notify_event_published, event.id)
        return event

    @staticmethod
    def publish_event(event_id: int, user_id: int):
        event = EventService._get_owned_event(event_id, user_id, "publish")
        if event.status != EventStatus.DRAFT:
            raise ValidationError("Only draft events can be published")

        EventService.validate_publish_requirements(EventService._event_attrs(event))

        try:
            EventService.transition_status(event, EventStatus.PUBLISHED)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        dispatch(NotificationService.notify_event_published, event.id)
        return event

    @staticmethod
    def cancel_event(event_id: int, user_id: int):
        """Cancel an event. Registrations are kept as they are for the record."""
        event = EventService._get_owned_event(event_id, user_id, "cancel")
        if event.status == EventStatus.COMPLETED:
            raise ValidationError("Cannot cancel a completed event")
        if event.status == EventStatus.CANCELLED:
            raise ValidationError("Event is already cancelled")

        try:
            EventService.transition_status(event, EventStatus.CANCELLED)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        dispatch(NotificationService.notify_event_cancelled, event.id)
        return event

    @staticmethod
    def update_event(event_id: int, data: dict, user_id: int):
        event = EventService._get_owned_event(event_id, user_id, "update")
        if event.status == EventStatus.COMPLETED:
            raise ValidationError("Cannot update a completed event")

        attrs = EventService._parse_event_data(data)
        new_status = attrs.pop("status", None)
        if new_status == event.status:
            new_status = None

        try:
            event = EventRepository.get_event_for_update(event_id)
            db.session.refresh(event)
            current_status = event.status

            if new_status is not None:
                EventService.validate_status_transition(current_status, new_status)

            if "start_date" in attrs or "end_date" in attrs:
                EventService.validate_event_dates(
                    attrs.get("start_date", event.start_date),
                    attrs.get("end_date", event.end_date),
                    require_future_start="start_date" in attrs,
                )

            max_registrations = attrs.get("max_registrations")
            if max_registrations is not None and max_registrations < event.current_registrations:
                raise ValidationError(
                    f"Cannot set capacity to {max_registrations} when "
                    f"{event.current_registrations} users are already registered"
                )

            if current_status == EventStatus.DRAFT and new_status == EventStatus.PUBLISHED:
                EventService.validate_publish_requirements(
                    {**EventService._event_attrs(event), **attrs}
                )

            EventRepository.update_event(event, attrs)
            if new_status is not None:
                EventService.transition_status(event, new_status)

            promoted = []
            if "max_registrations" in attrs and event.status == EventStatus.PUBLISHED:
                # Newly opened seats go to the waitlist before new registrants
                while True:
                    registration = RegistrationService.promote_from_waitlist(event)
                    if registration is None:
                        break
                    promoted.append(registration.id)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        current_app.logger.info(f"Event {event.id} updated by organizer {user_id}")
        for registration_id in promoted:
            dispatch(NotificationService.notify_promoted, registration_id)
        if new_status == EventStatus.CANCELLED:
            dispatch(NotificationService.notify_event_cancelled, event.id)
        else:
            if new_status == EventStatus.PUBLISHED:
                dispatch(NotificationService.notify_event_published, event.id)
            dispatch(NotificationService.notify_event_updated, event.id)
        return event

    @staticmethod
    def delete_event(event_id: int, user_id: int, is_admin: bool = False) -> dict:
        event = EventRepository.get_event(event_id)
        if not event:
            raise NotFoundError("Event not found")
        if not is_admin and not EventRepository.is_organizer(event, user_id):
            raise ForbiddenError("You do not have permission to delete this event")

        # Events with any registration history are cancelled instead of removed
        if EventRegistrationRepository.count_by_event(event.id) > 0:
            if event.status == EventStatus.CANCELLED:
                return {
                    "deleted": False,
                    "cancelled": True,
                    "event": event.to_dict(),
                    "message": "Event is already cancelled",
                }
            try:
                EventService.transition_status(event, EventStatus.CANCELLED)
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
            dispatch(NotificationService.notify_event_cancelled, event.id)
            return {
                "deleted": False,
                "cancelled": True,
                "event": event.to_dict(),
                "message": "Event has been cancelled due to existing registrations",
            }

        try:
            EventRepository.delete_event(event)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        current_app.logger.info(f"Event {event_id} permanently deleted by user {user_id}")
        return {
            "deleted": True,
            "cancelled": False,
            "message": "Event has been permanently deleted",
        }

    # ----- Queries -----

    @staticmethod
    def get_event(event_id: int, user_id: int = None):
        event = EventRepository.get_event(event_id)
        if not event:
            raise NotFoundError("Event not found")

        is_organizer = user_id is not None and EventRepository.is_organizer(event, user_id)
        if not event.is_public and not is_organizer:
            raise ForbiddenError("You do not have permission to view this event")
        if event.status == EventStatus.DRAFT and not is_organizer:
            raise ForbiddenError("This event is not yet published")
        return event

    @staticmethod
    def get_events(filters: dict = None, page: int = 1, limit: int = 20) -> dict:
        filters = dict(filters or {})
        category = filters.get("category")
        if category is not None and not isinstance(category, EventCategory):
            category = EventService._parse_event_data({"category": category})["category"]

        query_filters = {"category": category}
        if filters.get("upcoming"):
            query_filters["starts_after"] = utcnow()

        events, pagination = EventRepository.find_published(query_filters, page, limit)
        return {"events": [e.to_dict() for e in events], "pagination": pagination}

    @staticmethod
    def get_events_by_organizer(organizer_id: int, status: EventStatus = None, page: int = 1, limit: int = 20) -> dict:
        events, pagination = EventRepository.find_by_organizer(organizer_id, status, page, limit)
        return {"events": [e.to_dict() for e in events], "pagination": pagination}

    @staticmethod
    def get_event_capacity(event_id: int) -> dict:
        event = EventRepository.get_event(event_id)
        if not event:
            raise NotFoundError("Event not found")
        return {
            "total_registrations": event.current_registrations,
            "max_registrations": event.max_registrations,
            "available_spots": event.available_spots,
            "is_full": event.is_full,
            "status": event.status.value,
        }

    # ----- Sweeper -----

    @staticmethod
    def _sweep(events, from_status, to_status, results):
        for event in events:
            event_id, title = event.id, event.title
            try:
                moved = EventRepository.update_status(event, from_status, to_status)
                db.session.commit()
            except Exception as e:
                db.session.rollback()
                results["failed"] += 1
                current_app.logger.error(
                    f"Failed to update event {event_id} to {to_status.value}: {str(e)}"
                )
                continue

            # Another sweeper got there first
            if not moved:
                continue
            results["updated"] += 1
            results["events"].append(
                {
                    "id": event_id,
                    "title": title,
                    "previous_status": from_status.value,
                    "new_status": to_status.value,
                }
            )

    @staticmethod
    def update_event_statuses(now=None) -> dict:
        """Move events along the time-based transitions.

        PUBLISHED events that have started go IN_PROGRESS, IN_PROGRESS events
        that have ended go COMPLETED. Safe to run repeatedly or from several
        processes at once.
        """
        now = now or utcnow()
        results = {"updated": 0, "failed": 0, "events": []}

        EventService._sweep(
            EventRepository.find_events_to_start(now),
            EventStatus.PUBLISHED,
            EventStatus.IN_PROGRESS,
            results,
        )
        EventService._sweep(
            EventRepository.find_events_to_complete(now),
            EventStatus.IN_PROGRESS,
            EventStatus.COMPLETED,
            results,
        )

        if results["updated"] or results["failed"]:
            current_app.logger.info(
                f"Event status sweep: {results['updated']} updated, {results['failed']} failed"
            )
        return results

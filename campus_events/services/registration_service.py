from flask import current_app
from sqlalchemy.exc import IntegrityError
from campus_events.extensions import db
from campus_events.exceptions import (
    BadRequestError,
    ForbiddenError,
    NotFoundError,
    RegistrationClosedError,
    RegistrationExistsError,
)
from campus_events.models.enums import EventStatus, RegistrationStatus
from campus_events.repositories.event_repository import EventRepository
from campus_events.repositories.event_registration_repository import EventRegistrationRepository
from campus_events.services.notification_service import NotificationService
from campus_events.utils.dispatch import dispatch
from campus_events.utils.time import as_utc, utcnow


class RegistrationService:
    @staticmethod
    def _ensure_open(event):
        if event.status != EventStatus.PUBLISHED:
            raise RegistrationClosedError(
                f"Cannot register for {event.status.value.lower()} event"
            )
        if as_utc(event.end_date) < utcnow():
            raise RegistrationClosedError("Cannot register for past events")

    @staticmethod
    def _place(event, user_id: int, existing=None):
        """Take a seat or a waitlist spot for ``user_id`` on a locked event.

        Reuses ``existing`` (a CANCELLED record) when given. Nothing is
        committed here.
        """
        if EventRepository.increment_registrations(event):
            status = RegistrationStatus.REGISTERED
            waitlist_position = None
        else:
            status = RegistrationStatus.WAITLISTED
            waitlist_position = EventRegistrationRepository.get_next_waitlist_position(event.id)

        now = utcnow()
        if existing is not None:
            existing.status = status
            existing.registered_at = now
            existing.cancelled_at = None
            existing.attended_at = None
            existing.waitlist_position = waitlist_position
            db.session.flush()
            return existing

        return EventRegistrationRepository.create_registration(
            {
                "event_id": event.id,
                "user_id": user_id,
                "status": status,
                "registered_at": now,
                "waitlist_position": waitlist_position,
            }
        )

    @staticmethod
    def register_for_event(user_id: int, event_id: int) -> dict:
        current_app.logger.info(f"Registration attempt: User {user_id} for event {event_id}")

        if EventRegistrationRepository.find_active_by_user_and_event(user_id, event_id):
            raise RegistrationExistsError()

        event = EventRepository.get_event(event_id)
        if not event:
            raise NotFoundError("Event not found")
        RegistrationService._ensure_open(event)

        try:
            # Serialize placement per event; status may have moved since the read above
            event = EventRepository.get_event_for_update(event_id)
            if not event:
                raise NotFoundError("Event not found")
            db.session.refresh(event)
            RegistrationService._ensure_open(event)

            existing = EventRegistrationRepository.find_by_user_and_event(user_id, event_id)
            if existing is not None and existing.status != RegistrationStatus.CANCELLED:
                if existing.is_active:
                    raise RegistrationExistsError()
                raise BadRequestError(
                    f"Registration is already {existing.status.value.lower()}"
                )

            registration = RegistrationService._place(event, user_id, existing)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            current_app.logger.warning(
                f"Concurrent duplicate registration for user {user_id}, event {event_id}"
            )
            raise RegistrationExistsError()
        except Exception:
            db.session.rollback()
            raise

        if registration.status == RegistrationStatus.REGISTERED:
            current_app.logger.info(
                f"Registered user {user_id} for event {event_id} "
                f"({event.current_registrations}/{event.max_registrations})"
            )
            dispatch(NotificationService.notify_registration_confirmed, registration.id)
            message = "Successfully registered for event"
        else:
            current_app.logger.info(
                f"Waitlisted user {user_id} for event {event_id} at position {registration.waitlist_position}"
            )
            dispatch(
                NotificationService.notify_waitlisted,
                registration.id,
                registration.waitlist_position,
            )
            message = (
                f"Event is full. You have been added to the waitlist at position "
                f"{registration.waitlist_position}"
            )

        return {
            "status": registration.status.value,
            "registration": registration.to_dict(include_event=True),
            "waitlist_position": registration.waitlist_position,
            "message": message,
        }

    @staticmethod
    def promote_from_waitlist(event):
        """Move the head of the waitlist into a freed seat.

        Runs inside the caller's transaction. Returns the promoted
        registration, or None when nobody is waiting or no seat is free.
        """
        candidate = EventRegistrationRepository.get_first_waitlisted(event.id)
        if candidate is None:
            return None

        if not EventRepository.increment_registrations(event):
            current_app.logger.warning(
                f"No free seat to promote registration {candidate.id} for event {event.id}"
            )
            return None

        candidate.status = RegistrationStatus.REGISTERED
        candidate.waitlist_position = None
        db.session.flush()
        EventRegistrationRepository.recalculate_waitlist_positions(event.id)

        current_app.logger.info(
            f"Promoted user {candidate.user_id} from waitlist for event {event.id}"
        )
        return candidate

    @staticmethod
    def cancel_registration(registration_id: int, user_id: int) -> dict:
        registration = EventRegistrationRepository.get_registration(registration_id)
        if not registration:
            raise NotFoundError("Registration not found")
        if str(registration.user_id) != str(user_id):
            raise ForbiddenError("You do not have permission to cancel this registration")

        promoted = None
        try:
            event = EventRepository.get_event_for_update(registration.event_id)
            db.session.refresh(registration)

            if registration.status == RegistrationStatus.CANCELLED:
                raise BadRequestError("Registration is already cancelled")
            if not registration.is_active:
                raise BadRequestError(
                    f"Cannot cancel a registration marked {registration.status.value.lower()}"
                )

            previous_status = registration.status
            registration.status = RegistrationStatus.CANCELLED
            registration.cancelled_at = utcnow()
            registration.waitlist_position = None
            db.session.flush()

            if previous_status == RegistrationStatus.REGISTERED:
                EventRepository.decrement_registrations(event)
                promoted = RegistrationService.promote_from_waitlist(event)
            else:
                EventRegistrationRepository.recalculate_waitlist_positions(event.id)

            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        current_app.logger.info(
            f"User {user_id} cancelled registration {registration_id} for event {registration.event_id}"
        )
        dispatch(NotificationService.notify_registration_cancelled, registration.id)
        if promoted is not None:
            dispatch(NotificationService.notify_promoted, promoted.id)

        return {
            "registration": registration.to_dict(),
            "promoted_registration_id": promoted.id if promoted else None,
            "message": "Registration cancelled successfully",
        }

    @staticmethod
    def recalculate_waitlist(event_id: int) -> int:
        try:
            changed = EventRegistrationRepository.recalculate_waitlist_positions(event_id)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return changed

    @staticmethod
    def mark_attendance(registration_id: int, organizer_id: int, attended: bool = True):
        registration = EventRegistrationRepository.get_registration(registration_id)
        if not registration:
            raise NotFoundError("Registration not found")

        event = registration.event
        if not EventRepository.is_organizer(event, organizer_id):
            raise ForbiddenError("Only event organizers can mark attendance")
        if as_utc(event.end_date) > utcnow():
            raise ForbiddenError("Cannot mark attendance before event ends")
        if registration.status != RegistrationStatus.REGISTERED:
            raise BadRequestError("Cannot mark attendance for non-registered users")

        try:
            event = EventRepository.get_event_for_update(event.id)
            db.session.refresh(registration)
            if registration.status != RegistrationStatus.REGISTERED:
                raise BadRequestError("Cannot mark attendance for non-registered users")

            if attended:
                registration.status = RegistrationStatus.ATTENDED
                registration.attended_at = utcnow()
            else:
                registration.status = RegistrationStatus.NO_SHOW
            db.session.flush()

            # The seat is released; the event is over so nobody is promoted
            EventRepository.decrement_registrations(event)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        current_app.logger.info(
            f"Marked registration {registration_id} as {registration.status.value}"
        )
        return registration

    @staticmethod
    def check_eligibility(user_id: int, event_id: int) -> dict:
        existing = EventRegistrationRepository.find_active_by_user_and_event(user_id, event_id)
        if existing:
            return {
                "eligible": False,
                "reason": "Already registered for this event",
                "status": existing.status.value,
            }

        event = EventRepository.get_event(event_id)
        if not event:
            return {"eligible": False, "reason": "Event not found"}
        if event.status != EventStatus.PUBLISHED:
            return {"eligible": False, "reason": f"Event is {event.status.value.lower()}"}
        if as_utc(event.end_date) < utcnow():
            return {"eligible": False, "reason": "Event has already ended"}

        has_capacity = not event.is_full
        return {
            "eligible": True,
            "has_capacity": has_capacity,
            "will_be_waitlisted": not has_capacity,
            "available_spots": event.available_spots,
        }

    @staticmethod
    def get_user_registrations(user_id: int, status=None, page=1, limit=50) -> dict:
        registrations, pagination = EventRegistrationRepository.find_by_user(
            user_id, status, page, limit
        )
        return {
            "registrations": [r.to_dict(include_event=True) for r in registrations],
            "pagination": pagination,
        }

    @staticmethod
    def _get_organized_event(event_id: int, user_id: int, message: str):
        event = EventRepository.get_event(event_id)
        if not event:
            raise NotFoundError("Event not found")
        if not EventRepository.is_organizer(event, user_id):
            raise ForbiddenError(message)
        return event

    @staticmethod
    def get_event_attendees(
        event_id: int,
        user_id: int,
        status=RegistrationStatus.REGISTERED,
        page=1,
        limit=100,
    ) -> dict:
        RegistrationService._get_organized_event(
            event_id, user_id, "Only event organizers can view attendees"
        )
        registrations, pagination = EventRegistrationRepository.find_by_event(
            event_id, status, page, limit
        )
        return {
            "attendees": [r.to_dict(include_user=True) for r in registrations],
            "pagination": pagination,
        }

    @staticmethod
    def get_registration_details(registration_id: int, user_id: int):
        registration = EventRegistrationRepository.get_registration(registration_id)
        if not registration:
            raise NotFoundError("Registration not found")

        is_owner = str(registration.user_id) == str(user_id)
        if not is_owner and not EventRepository.is_organizer(registration.event, user_id):
            raise ForbiddenError("You do not have permission to view this registration")
        return registration

    @staticmethod
    def get_registration_stats(event_id: int, user_id: int) -> dict:
        event = RegistrationService._get_organized_event(
            event_id, user_id, "Only event organizers can view statistics"
        )
        stats = EventRegistrationRepository.get_event_registration_stats(event_id)
        return {
            **stats,
            "capacity": event.max_registrations,
            "current_registrations": event.current_registrations,
            "available_spots": event.available_spots,
            "is_full": event.is_full,
        }

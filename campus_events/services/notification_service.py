from datetime import timedelta
from flask import current_app
from campus_events.extensions import db
from campus_events.exceptions import ForbiddenError, NotFoundError, ValidationError
from campus_events.models.enums import NotificationStatus, NotificationType
from campus_events.repositories.event_repository import EventRepository
from campus_events.repositories.event_registration_repository import EventRegistrationRepository
from campus_events.repositories.notification_repository import NotificationRepository
from campus_events.utils import email
from campus_events.utils.time import utcnow


class NotificationService:
    """In-app notifications and the emails that accompany them.

    The ``notify_*`` methods are dispatch targets: they take ids, reload what
    they need and commit their own writes, so they can run after the
    triggering transaction has committed, in a background thread.
    """

    NOTIFICATION_CONFIG = {
        NotificationType.EVENT_REMINDER: {
            "title": lambda d: f"Reminder: {d['event_title']} is coming up soon!",
            "message": lambda d: f"Don't forget about \"{d['event_title']}\" starting {d['event_date']}.",
        },
        NotificationType.REGISTRATION_CONFIRMED: {
            "title": lambda d: "Registration Confirmed",
            "message": lambda d: f"You have successfully registered for \"{d['event_title']}\"",
        },
        NotificationType.REGISTRATION_WAITLISTED: {
            "title": lambda d: "Added to Waitlist",
            "message": lambda d: f"You are #{d['waitlist_position']} on the waitlist for \"{d['event_title']}\"",
        },
        NotificationType.REGISTRATION_APPROVED: {
            "title": lambda d: "Promoted from Waitlist",
            "message": lambda d: f"A spot opened up! You are now registered for \"{d['event_title']}\"",
        },
        NotificationType.REGISTRATION_CANCELLED: {
            "title": lambda d: "Registration Cancelled",
            "message": lambda d: f"Your registration for \"{d['event_title']}\" has been cancelled",
        },
        NotificationType.EVENT_PUBLISHED: {
            "title": lambda d: "Event Published",
            "message": lambda d: f"\"{d['event_title']}\" is now live and open for registration.",
        },
        NotificationType.EVENT_UPDATED: {
            "title": lambda d: "Event Updated",
            "message": lambda d: f"\"{d['event_title']}\" has been updated. Check the event details for changes.",
        },
        NotificationType.EVENT_CANCELLED: {
            "title": lambda d: "Event Cancelled",
            "message": lambda d: f"Unfortunately, \"{d['event_title']}\" has been cancelled.",
        },
        NotificationType.SYSTEM_ANNOUNCEMENT: {
            "title": lambda d: d.get("title") or "Announcement",
            "message": lambda d: d.get("message") or "",
        },
    }

    @staticmethod
    def create_notification(
        user_id: int,
        notification_type: NotificationType,
        event_id: int = None,
        registration_id: int = None,
        data: dict = None,
        title: str = None,
        message: str = None,
    ):
        data = dict(data or {})
        config = NotificationService.NOTIFICATION_CONFIG.get(notification_type)
        if not config:
            raise ValidationError(f"Invalid notification type: {notification_type}")

        notification = NotificationRepository.create_notification(
            {
                "user_id": user_id,
                "type": notification_type,
                "status": NotificationStatus.UNREAD,
                "title": (title or config["title"](data))[:200],
                "message": (message or config["message"](data))[:1000],
                "event_id": event_id,
                "registration_id": registration_id,
                "action_url": data.get("action_url"),
                "data": data,
            }
        )
        db.session.commit()
        current_app.logger.info(
            f"Created {notification_type.value} notification {notification.id} for user {user_id}"
        )
        return notification

    # ----- Registration side effects -----

    @staticmethod
    def _load_registration(registration_id: int):
        registration = EventRegistrationRepository.get_registration(registration_id)
        if not registration:
            raise NotFoundError(f"Registration {registration_id} not found")
        return registration, registration.event, registration.user

    @staticmethod
    def notify_registration_confirmed(registration_id: int):
        registration, event, user = NotificationService._load_registration(registration_id)
        NotificationService.create_notification(
            user.id,
            NotificationType.REGISTRATION_CONFIRMED,
            event_id=event.id,
            registration_id=registration.id,
            data=email.event_template_data(event),
        )
        email.send_registration_confirmation_email(user, event)

    @staticmethod
    def notify_waitlisted(registration_id: int, waitlist_position: int):
        registration, event, user = NotificationService._load_registration(registration_id)
        NotificationService.create_notification(
            user.id,
            NotificationType.REGISTRATION_WAITLISTED,
            event_id=event.id,
            registration_id=registration.id,
            data={**email.event_template_data(event), "waitlist_position": waitlist_position},
        )

    @staticmethod
    def notify_promoted(registration_id: int):
        registration, event, user = NotificationService._load_registration(registration_id)
        NotificationService.create_notification(
            user.id,
            NotificationType.REGISTRATION_APPROVED,
            event_id=event.id,
            registration_id=registration.id,
            data={**email.event_template_data(event), "promoted_from": "waitlist"},
        )
        email.send_waitlist_promotion_email(user, event)

    @staticmethod
    def notify_registration_cancelled(registration_id: int):
        registration, event, user = NotificationService._load_registration(registration_id)
        NotificationService.create_notification(
            user.id,
            NotificationType.REGISTRATION_CANCELLED,
            event_id=event.id,
            registration_id=registration.id,
            data={**email.event_template_data(event), "cancellation_type": "user_initiated"},
        )
        email.send_registration_cancelled_email(user, event)

    # ----- Event lifecycle side effects -----

    @staticmethod
    def _load_event(event_id: int):
        event = EventRepository.get_event(event_id)
        if not event:
            raise NotFoundError(f"Event {event_id} not found")
        return event

    @staticmethod
    def _notify_attendees(event, notification_type, send_attendee_email) -> int:
        """Notify every REGISTERED attendee; one failure does not stop the rest."""
        data = email.event_template_data(event)
        notified = 0
        for registration in EventRegistrationRepository.find_registered_by_event(event.id):
            user = registration.user
            try:
                NotificationService.create_notification(
                    user.id,
                    notification_type,
                    event_id=event.id,
                    registration_id=registration.id,
                    data=data,
                )
                send_attendee_email(user, event)
                notified += 1
            except Exception as e:
                db.session.rollback()
                current_app.logger.error(
                    f"Failed to notify user {user.id} about event {event.id}: {str(e)}"
                )
        return notified

    @staticmethod
    def notify_event_published(event_id: int):
        event = NotificationService._load_event(event_id)
        NotificationService.create_notification(
            event.organizer_id,
            NotificationType.EVENT_PUBLISHED,
            event_id=event.id,
            data=email.event_template_data(event),
        )

    @staticmethod
    def notify_event_updated(event_id: int) -> int:
        event = NotificationService._load_event(event_id)
        notified = NotificationService._notify_attendees(
            event, NotificationType.EVENT_UPDATED, email.send_event_updated_email
        )
        NotificationService.create_notification(
            event.organizer_id,
            NotificationType.EVENT_UPDATED,
            event_id=event.id,
            data={**email.event_template_data(event), "attendees_notified": notified},
            title="Event Updated Successfully",
            message=f"\"{event.title}\" was updated and {notified} attendee(s) were notified.",
        )
        return notified

    @staticmethod
    def notify_event_cancelled(event_id: int) -> int:
        event = NotificationService._load_event(event_id)
        notified = NotificationService._notify_attendees(
            event, NotificationType.EVENT_CANCELLED, email.send_event_cancelled_email
        )
        NotificationService.create_notification(
            event.organizer_id,
            NotificationType.EVENT_CANCELLED,
            event_id=event.id,
            data={**email.event_template_data(event), "attendees_notified": notified},
            title="Event Cancelled",
            message=f"\"{event.title}\" was cancelled and {notified} registered attendee(s) were notified.",
        )
        return notified

    @staticmethod
    def send_event_reminders(now=None) -> int:
        """Remind registered attendees of published events starting soon.

        Each (user, event) pair gets at most one reminder.
        """
        now = now or utcnow()
        window = timedelta(hours=current_app.config.get("REMINDER_WINDOW_HOURS", 24))
        sent = 0
        for event in EventRepository.find_starting_between(now, now + window):
            data = email.event_template_data(event)
            for registration in EventRegistrationRepository.find_registered_by_event(event.id):
                if NotificationRepository.exists_for_user_and_event(
                    registration.user_id, event.id, NotificationType.EVENT_REMINDER
                ):
                    continue
                try:
                    NotificationService.create_notification(
                        registration.user_id,
                        NotificationType.EVENT_REMINDER,
                        event_id=event.id,
                        registration_id=registration.id,
                        data=data,
                    )
                    email.send_event_reminder_email(registration.user, event)
                    sent += 1
                except Exception as e:
                    db.session.rollback()
                    current_app.logger.error(
                        f"Failed to send reminder to user {registration.user_id} for event {event.id}: {str(e)}"
                    )
        if sent:
            current_app.logger.info(f"Sent {sent} event reminder(s)")
        return sent

    # ----- Inbox -----

    @staticmethod
    def get_user_notifications(user_id: int, status=None, notification_type=None, page=1, limit=20):
        notifications, pagination = NotificationRepository.find_by_user(
            user_id, status, notification_type, page, limit
        )
        return {
            "notifications": [n.to_dict() for n in notifications],
            "pagination": pagination,
        }

    @staticmethod
    def get_unread_count(user_id: int) -> int:
        return NotificationRepository.get_unread_count(user_id)

    @staticmethod
    def _get_owned(notification_id: int, user_id: int):
        notification = NotificationRepository.get_notification(notification_id)
        if not notification:
            raise NotFoundError("Notification not found")
        if str(notification.user_id) != str(user_id):
            raise ForbiddenError("You do not have permission to modify this notification")
        return notification

    @staticmethod
    def mark_as_read(notification_id: int, user_id: int):
        notification = NotificationService._get_owned(notification_id, user_id)
        NotificationRepository.mark_as_read(notification)
        db.session.commit()
        return notification

    @staticmethod
    def mark_all_as_read(user_id: int) -> int:
        modified = NotificationRepository.mark_all_as_read(user_id)
        db.session.commit()
        return modified

    @staticmethod
    def archive(notification_id: int, user_id: int):
        notification = NotificationService._get_owned(notification_id, user_id)
        NotificationRepository.archive(notification)
        db.session.commit()
        return notification

    @staticmethod
    def delete_notification(notification_id: int, user_id: int):
        notification = NotificationService._get_owned(notification_id, user_id)
        NotificationRepository.delete(notification)
        db.session.commit()

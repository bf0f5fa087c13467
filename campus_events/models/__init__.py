from campus_events.models.user import User
from campus_events.models.event import Event
from campus_events.models.event_registration import EventRegistration
from campus_events.models.notification import Notification
from campus_events.models.enums import (
    EventCategory,
    EventStatus,
    NotificationStatus,
    NotificationType,
    RegistrationStatus,
    UserRole,
)

from campus_events.repositories.user_repository import UserRepository
from campus_events.repositories.event_repository import EventRepository
from campus_events.repositories.event_registration_repository import EventRegistrationRepository
from campus_events.repositories.notification_repository import NotificationRepository

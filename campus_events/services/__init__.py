from campus_events.services.notification_service import NotificationService
from campus_events.services.registration_service import RegistrationService
from campus_events.services.event_service import EventService
from campus_events.services.event_scheduler import EventScheduler

from enum import Enum


class EventStatus(Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    IN_PROGRESS = "IN_PROGRESS"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class EventCategory(Enum):
    ACADEMIC = "Academic"
    CAREER = "Career"
    CLUBS = "Clubs"
    SPORTS = "Sports"
    SOCIAL = "Social"
    CULTURAL = "Cultural"
    OTHER = "Other"


class RegistrationStatus(Enum):
    REGISTERED = "REGISTERED"
    WAITLISTED = "WAITLISTED"
    CANCELLED = "CANCELLED"
    ATTENDED = "ATTENDED"
    NO_SHOW = "NO_SHOW"


ACTIVE_REGISTRATION_STATUSES = [
    RegistrationStatus.REGISTERED,
    RegistrationStatus.WAITLISTED,
]


class NotificationType(Enum):
    EVENT_REMINDER = "EVENT_REMINDER"
    EVENT_CANCELLED = "EVENT_CANCELLED"
    EVENT_UPDATED = "EVENT_UPDATED"
    EVENT_PUBLISHED = "EVENT_PUBLISHED"
    REGISTRATION_CONFIRMED = "REGISTRATION_CONFIRMED"
    REGISTRATION_WAITLISTED = "REGISTRATION_WAITLISTED"
    REGISTRATION_APPROVED = "REGISTRATION_APPROVED"
    REGISTRATION_CANCELLED = "REGISTRATION_CANCELLED"
    SYSTEM_ANNOUNCEMENT = "SYSTEM_ANNOUNCEMENT"


class NotificationStatus(Enum):
    UNREAD = "UNREAD"
    READ = "READ"
    ARCHIVED = "ARCHIVED"


class UserRole(Enum):
    STUDENT = 1
    ORGANIZER = 2
    ADMIN = 3

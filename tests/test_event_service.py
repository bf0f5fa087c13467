from datetime import timedelta

import pytest
from sqlalchemy.orm.attributes import set_committed_value

from campus_events.exceptions import (
    ConflictError,
    ForbiddenError,
    MissingFieldsError,
    NotFoundError,
    ValidationError,
)
from campus_events.extensions import db
from campus_events.models import Event, EventRegistration, Notification
from campus_events.models.enums import (
    EventCategory,
    EventStatus,
    NotificationType,
    RegistrationStatus,
)
from campus_events.repositories.event_repository import EventRepository
from campus_events.services.event_service import EventService
from campus_events.services.registration_service import RegistrationService
from campus_events.utils.time import utcnow


def iso(dt):
    return dt.isoformat().replace("+00:00", "Z")


@pytest.fixture
def event_payload():
    start = (utcnow() + timedelta(days=10)).replace(hour=15, minute=0, second=0, microsecond=0)
    return {
        "title": "Career Fair",
        "description": "Meet employers from across the region.",
        "category": "Career",
        "start_date": iso(start),
        "end_date": iso(start + timedelta(hours=3)),
        "location": {"name": "Student Union Ballroom", "address": "2 Campus Way"},
        "max_registrations": 50,
    }


class TestValidation:
    def test_transition_table(self):
        allowed = {
            EventStatus.DRAFT: {EventStatus.PUBLISHED, EventStatus.CANCELLED},
            EventStatus.PUBLISHED: {EventStatus.IN_PROGRESS, EventStatus.CANCELLED},
            EventStatus.IN_PROGRESS: {EventStatus.COMPLETED, EventStatus.CANCELLED},
            EventStatus.CANCELLED: set(),
            EventStatus.COMPLETED: set(),
        }
        for current, targets in allowed.items():
            for new in EventStatus:
                if new in targets:
                    EventService.validate_status_transition(current, new)
                else:
                    with pytest.raises(ValidationError):
                        EventService.validate_status_transition(current, new)

    def test_illegal_transition_names_allowed_set(self):
        with pytest.raises(ValidationError) as exc:
            EventService.validate_status_transition(EventStatus.PUBLISHED, EventStatus.DRAFT)
        assert "IN_PROGRESS, CANCELLED" in exc.value.message

        with pytest.raises(ValidationError) as exc:
            EventService.validate_status_transition(EventStatus.COMPLETED, EventStatus.CANCELLED)
        assert "Allowed transitions: none" in exc.value.message

    def test_same_day_event_needs_thirty_minutes(self):
        start = (utcnow() + timedelta(days=3)).replace(hour=10, minute=0)
        with pytest.raises(ValidationError, match="at least 30 minutes"):
            EventService.validate_event_dates(start, start + timedelta(minutes=20))
        with pytest.raises(ValidationError, match="End time must be after start time"):
            EventService.validate_event_dates(start, start - timedelta(minutes=5))
        EventService.validate_event_dates(start, start + timedelta(minutes=30))

    def test_multi_day_event_compares_calendar_dates(self):
        start = (utcnow() + timedelta(days=3)).replace(hour=23, minute=50)
        # Ten minutes long but spans midnight, so the calendar dates differ
        EventService.validate_event_dates(start, start + timedelta(minutes=10))
        with pytest.raises(ValidationError, match="must be after start date"):
            EventService.validate_event_dates(start, start - timedelta(days=1))

    def test_start_must_be_in_future(self):
        start = utcnow() - timedelta(hours=1)
        with pytest.raises(ValidationError, match="in the future"):
            EventService.validate_event_dates(start, start + timedelta(hours=2))
        EventService.validate_event_dates(start, start + timedelta(hours=2), require_future_start=False)

    def test_publish_requirements_list_every_missing_field(self):
        with pytest.raises(ValidationError) as exc:
            EventService.validate_publish_requirements(
                {"title": "Hack Night", "location_is_virtual": True}
            )
        assert exc.value.errors == [
            "description",
            "start_date",
            "end_date",
            "location.name",
            "category",
            "location.virtual_link",
        ]


class TestCreateEvent:
    def test_creates_draft_by_default(self, organizer, event_payload):
        event = EventService.create_event(event_payload, organizer.id)

        assert event.status == EventStatus.DRAFT
        assert event.category == EventCategory.CAREER
        assert event.location_name == "Student Union Ballroom"
        assert event.organizer_id == organizer.id
        assert event.current_registrations == 0

    def test_create_published_notifies_organizer(self, organizer, event_payload):
        event = EventService.create_event({**event_payload, "status": "PUBLISHED"}, organizer.id)

        assert event.status == EventStatus.PUBLISHED
        notification = Notification.query.filter_by(user_id=organizer.id).one()
        assert notification.type == NotificationType.EVENT_PUBLISHED

    def test_students_cannot_create(self, student, event_payload):
        with pytest.raises(ForbiddenError):
            EventService.create_event(event_payload, student.id)

    def test_missing_fields(self, organizer):
        with pytest.raises(MissingFieldsError) as exc:
            EventService.create_event({"title": "Lonely"}, organizer.id)
        assert exc.value.fields == ["start_date", "end_date"]

    def test_only_draft_or_published(self, organizer, event_payload):
        with pytest.raises(ValidationError):
            EventService.create_event({**event_payload, "status": "COMPLETED"}, organizer.id)

    def test_published_requires_location_name(self, organizer, event_payload):
        payload = {**event_payload, "status": "PUBLISHED", "location": {"address": "Somewhere"}}
        with pytest.raises(ValidationError) as exc:
            EventService.create_event(payload, organizer.id)
        assert exc.value.errors == ["location.name"]
        assert Event.query.count() == 0

    def test_rejects_bad_input(self, organizer, event_payload):
        with pytest.raises(ValidationError):
            EventService.create_event({**event_payload, "category": "Karaoke"}, organizer.id)
        with pytest.raises(ValidationError):
            EventService.create_event({**event_payload, "max_registrations": -1}, organizer.id)
        with pytest.raises(ValidationError):
            EventService.create_event({**event_payload, "start_date": "next tuesday"}, organizer.id)
        with pytest.raises(ValidationError):
            EventService.create_event({**event_payload, "title": "Hi"}, organizer.id)


class TestPublishEvent:
    def test_publish_draft(self, make_event, organizer):
        event = make_event(status=EventStatus.DRAFT)

        EventService.publish_event(event.id, organizer.id)

        assert event.status == EventStatus.PUBLISHED
        notification = Notification.query.filter_by(user_id=organizer.id).one()
        assert notification.type == NotificationType.EVENT_PUBLISHED

    def test_publish_missing_location_name_keeps_draft(self, make_event, organizer):
        event = make_event(status=EventStatus.DRAFT, location_name=None)

        with pytest.raises(ValidationError) as exc:
            EventService.publish_event(event.id, organizer.id)

        assert "location.name" in exc.value.errors
        db.session.expire_all()
        assert db.session.get(Event, event.id).status == EventStatus.DRAFT

    def test_publish_virtual_without_link(self, make_event, organizer):
        event = make_event(status=EventStatus.DRAFT, location_is_virtual=True)

        with pytest.raises(ValidationError) as exc:
            EventService.publish_event(event.id, organizer.id)
        assert exc.value.errors == ["location.virtual_link"]

    def test_publish_requires_draft(self, make_event, organizer):
        event = make_event(status=EventStatus.PUBLISHED)
        with pytest.raises(ValidationError, match="Only draft events"):
            EventService.publish_event(event.id, organizer.id)

    def test_publish_requires_organizer(self, make_event, student):
        event = make_event(status=EventStatus.DRAFT)
        with pytest.raises(ForbiddenError):
            EventService.publish_event(event.id, student.id)

    def test_publish_missing_event(self, organizer):
        with pytest.raises(NotFoundError):
            EventService.publish_event(404, organizer.id)


class TestCancelEvent:
    def test_cancel_notifies_registered_attendees(self, make_event, make_user, organizer):
        event = make_event(max_registrations=1)
        attendee, waiting = make_user(), make_user()
        RegistrationService.register_for_event(attendee.id, event.id)
        RegistrationService.register_for_event(waiting.id, event.id)

        EventService.cancel_event(event.id, organizer.id)

        assert event.status == EventStatus.CANCELLED
        cancelled_for = {
            n.user_id
            for n in Notification.query.filter_by(type=NotificationType.EVENT_CANCELLED)
        }
        assert cancelled_for == {attendee.id, organizer.id}

        summary = Notification.query.filter_by(
            user_id=organizer.id, type=NotificationType.EVENT_CANCELLED
        ).one()
        assert summary.data["attendees_notified"] == 1

        # Registrations are left as they were
        statuses = {r.user_id: r.status for r in EventRegistration.query.filter_by(event_id=event.id)}
        assert statuses == {
            attendee.id: RegistrationStatus.REGISTERED,
            waiting.id: RegistrationStatus.WAITLISTED,
        }

    @pytest.mark.parametrize("status", [EventStatus.CANCELLED, EventStatus.COMPLETED])
    def test_cannot_cancel_terminal_event(self, make_event, organizer, status):
        event = make_event(status=status)
        with pytest.raises(ValidationError):
            EventService.cancel_event(event.id, organizer.id)

    def test_cancel_requires_organizer(self, make_event, student):
        event = make_event()
        with pytest.raises(ForbiddenError):
            EventService.cancel_event(event.id, student.id)


class TestUpdateEvent:
    def test_update_fields_and_notify(self, make_event, make_user, organizer):
        event = make_event()
        attendee = make_user()
        RegistrationService.register_for_event(attendee.id, event.id)

        EventService.update_event(
            event.id,
            {"title": "Advanced Robotics", "location": {"name": "Lab 3"}},
            organizer.id,
        )

        assert event.title == "Advanced Robotics"
        assert event.location_name == "Lab 3"
        assert event.location_address == "1 Campus Way"
        updated = Notification.query.filter_by(type=NotificationType.EVENT_UPDATED).all()
        assert {n.user_id for n in updated} == {attendee.id, organizer.id}

    def test_completed_event_is_frozen(self, make_event, organizer):
        event = make_event(status=EventStatus.COMPLETED, start_in=timedelta(days=-3))
        with pytest.raises(ValidationError, match="completed"):
            EventService.update_event(event.id, {"title": "Renamed"}, organizer.id)

    def test_capacity_cannot_drop_below_registrations(self, make_event, make_user, organizer):
        event = make_event(max_registrations=5)
        for _ in range(3):
            RegistrationService.register_for_event(make_user().id, event.id)

        with pytest.raises(ValidationError, match="Cannot set capacity to 2"):
            EventService.update_event(event.id, {"max_registrations": 2}, organizer.id)

        EventService.update_event(event.id, {"max_registrations": 3}, organizer.id)
        assert event.max_registrations == 3
        EventService.update_event(event.id, {"max_registrations": None}, organizer.id)
        assert event.max_registrations is None

    def test_raising_capacity_promotes_waitlist_in_order(self, make_event, make_user, organizer):
        event = make_event(max_registrations=1)
        users = [make_user() for _ in range(4)]
        for user in users:
            RegistrationService.register_for_event(user.id, event.id)

        EventService.update_event(event.id, {"max_registrations": 3}, organizer.id)

        registered = {
            r.user_id
            for r in EventRegistration.query.filter_by(
                event_id=event.id, status=RegistrationStatus.REGISTERED
            )
        }
        assert registered == {users[0].id, users[1].id, users[2].id}
        assert event.current_registrations == 3
        last = EventRegistration.query.filter_by(event_id=event.id, user_id=users[3].id).one()
        assert last.waitlist_position == 1
        promoted = Notification.query.filter_by(type=NotificationType.REGISTRATION_APPROVED).all()
        assert {n.user_id for n in promoted} == {users[1].id, users[2].id}

        late = RegistrationService.register_for_event(make_user().id, event.id)
        assert late["status"] == "WAITLISTED"
        assert late["waitlist_position"] == 2

    def test_removing_capacity_limit_empties_waitlist(self, make_event, make_user, organizer):
        event = make_event(max_registrations=1)
        for _ in range(3):
            RegistrationService.register_for_event(make_user().id, event.id)

        EventService.update_event(event.id, {"max_registrations": None}, organizer.id)

        assert event.current_registrations == 3
        assert EventRegistration.query.filter_by(
            event_id=event.id, status=RegistrationStatus.WAITLISTED
        ).count() == 0

    def test_status_change_follows_table(self, make_event, organizer):
        event = make_event(status=EventStatus.PUBLISHED)
        with pytest.raises(ValidationError):
            EventService.update_event(event.id, {"status": "DRAFT"}, organizer.id)

        EventService.update_event(event.id, {"status": "CANCELLED"}, organizer.id)
        assert event.status == EventStatus.CANCELLED

    def test_draft_to_published_checks_merged_data(self, make_event, organizer):
        event = make_event(status=EventStatus.DRAFT, location_name=None)

        with pytest.raises(ValidationError):
            EventService.update_event(event.id, {"status": "PUBLISHED"}, organizer.id)

        EventService.update_event(
            event.id, {"status": "PUBLISHED", "location": {"name": "Quad"}}, organizer.id
        )
        assert event.status == EventStatus.PUBLISHED

    def test_future_start_only_checked_when_start_changes(self, make_event, organizer):
        event = make_event(status=EventStatus.IN_PROGRESS, start_in=timedelta(hours=-1), duration=timedelta(hours=3))
        new_end = event.end_date + timedelta(hours=1)

        EventService.update_event(event.id, {"end_date": iso(new_end)}, organizer.id)

        past_start = utcnow() - timedelta(hours=2)
        with pytest.raises(ValidationError, match="in the future"):
            EventService.update_event(event.id, {"start_date": iso(past_start)}, organizer.id)

    def test_update_requires_organizer(self, make_event, student):
        event = make_event()
        with pytest.raises(ForbiddenError):
            EventService.update_event(event.id, {"title": "Mine now"}, student.id)


class TestDeleteEvent:
    def test_hard_delete_without_registrations(self, make_event, organizer):
        event = make_event()
        event_id = event.id

        result = EventService.delete_event(event_id, organizer.id)

        assert result["deleted"] is True
        assert db.session.get(Event, event_id) is None

    def test_soft_cancel_with_registrations(self, make_event, organizer, student):
        event = make_event()
        reg = RegistrationService.register_for_event(student.id, event.id)["registration"]
        # Even a cancelled registration keeps the event around
        RegistrationService.cancel_registration(reg["id"], student.id)

        result = EventService.delete_event(event.id, organizer.id)

        assert result["deleted"] is False
        assert result["cancelled"] is True
        assert db.session.get(Event, event.id).status == EventStatus.CANCELLED

    def test_admin_can_delete(self, make_event, make_user):
        from campus_events.models.enums import UserRole

        event = make_event()
        admin = make_user(UserRole.ADMIN)
        assert EventService.delete_event(event.id, admin.id, is_admin=True)["deleted"] is True

    def test_stranger_cannot_delete(self, make_event, student):
        event = make_event()
        with pytest.raises(ForbiddenError):
            EventService.delete_event(event.id, student.id)


class TestQueries:
    def test_draft_visible_to_organizer_only(self, make_event, organizer, student):
        event = make_event(status=EventStatus.DRAFT)

        assert EventService.get_event(event.id, organizer.id).id == event.id
        with pytest.raises(ForbiddenError):
            EventService.get_event(event.id, student.id)
        with pytest.raises(ForbiddenError):
            EventService.get_event(event.id)

    def test_private_event_hidden(self, make_event, student):
        event = make_event(is_public=False)
        with pytest.raises(ForbiddenError):
            EventService.get_event(event.id, student.id)

    def test_list_only_public_published(self, make_event):
        published = make_event(title="Open Mic")
        make_event(status=EventStatus.DRAFT)
        make_event(is_public=False)
        sports = make_event(title="Pickup Soccer", category=EventCategory.SPORTS)

        everything = EventService.get_events()
        assert {e["id"] for e in everything["events"]} == {published.id, sports.id}

        only_sports = EventService.get_events({"category": "Sports"})
        assert [e["id"] for e in only_sports["events"]] == [sports.id]

    def test_organizer_listing(self, make_event, organizer):
        draft = make_event(status=EventStatus.DRAFT)
        make_event()

        result = EventService.get_events_by_organizer(organizer.id, EventStatus.DRAFT)
        assert [e["id"] for e in result["events"]] == [draft.id]

    def test_capacity(self, make_event, make_user):
        event = make_event(max_registrations=2)
        RegistrationService.register_for_event(make_user().id, event.id)

        assert EventService.get_event_capacity(event.id) == {
            "total_registrations": 1,
            "max_registrations": 2,
            "available_spots": 1,
            "is_full": False,
            "status": "PUBLISHED",
        }


class TestTransitionStatus:
    def test_lost_race_raises_conflict(self, make_event):
        event = make_event(status=EventStatus.PUBLISHED)
        # Another writer moves the event while we hold a stale copy
        assert EventRepository.update_status(event, EventStatus.PUBLISHED, EventStatus.CANCELLED)
        db.session.commit()
        set_committed_value(event, "status", EventStatus.PUBLISHED)

        with pytest.raises(ConflictError):
            EventService.transition_status(event, EventStatus.IN_PROGRESS)
        db.session.rollback()


class TestSeatCounter:
    def test_stale_copy_cannot_overfill(self, make_event, make_user):
        event = make_event(max_registrations=2)
        # Another writer takes the last seats while we hold a stale copy
        assert EventRepository.increment_registrations(event)
        assert EventRepository.increment_registrations(event)
        db.session.commit()
        set_committed_value(event, "current_registrations", 0)

        assert EventRepository.increment_registrations(event) is False
        db.session.commit()
        assert event.current_registrations == 2

        result = RegistrationService.register_for_event(make_user().id, event.id)
        assert result["status"] == "WAITLISTED"
        assert event.current_registrations == 2

    def test_decrement_stops_at_zero(self, make_event):
        event = make_event()

        assert EventRepository.decrement_registrations(event) is False
        db.session.commit()
        assert event.current_registrations == 0


class TestUpdateEventStatuses:
    def test_sweep_starts_then_is_idempotent(self, make_event):
        event = make_event(start_in=timedelta(minutes=-10), duration=timedelta(hours=2))

        first = EventService.update_event_statuses()
        assert first["updated"] == 1
        assert first["failed"] == 0
        assert first["events"] == [
            {
                "id": event.id,
                "title": event.title,
                "previous_status": "PUBLISHED",
                "new_status": "IN_PROGRESS",
            }
        ]
        assert event.status == EventStatus.IN_PROGRESS

        second = EventService.update_event_statuses()
        assert second == {"updated": 0, "failed": 0, "events": []}
        assert event.status == EventStatus.IN_PROGRESS

    def test_sweep_completes_ended_events(self, make_event):
        event = make_event(
            status=EventStatus.IN_PROGRESS, start_in=timedelta(hours=-3), duration=timedelta(hours=2)
        )

        result = EventService.update_event_statuses()

        assert result["updated"] == 1
        assert event.status == EventStatus.COMPLETED

    def test_sweep_leaves_other_events_alone(self, make_event):
        future = make_event()
        draft = make_event(status=EventStatus.DRAFT, start_in=timedelta(minutes=-5))
        cancelled = make_event(status=EventStatus.CANCELLED, start_in=timedelta(minutes=-5))

        result = EventService.update_event_statuses()

        assert result["updated"] == 0
        assert future.status == EventStatus.PUBLISHED
        assert draft.status == EventStatus.DRAFT
        assert cancelled.status == EventStatus.CANCELLED

    def test_sweep_with_explicit_clock(self, make_event):
        event = make_event(start_in=timedelta(days=1), duration=timedelta(hours=2))

        result = EventService.update_event_statuses(now=utcnow() + timedelta(days=1, hours=1))

        assert result["updated"] == 1
        assert event.status == EventStatus.IN_PROGRESS

"""Shared fixtures: an app on in-memory SQLite with side effects run inline."""

from datetime import timedelta

import pytest
from flask_jwt_extended import create_access_token

from campus_events import create_app
from campus_events.extensions import db
from campus_events.models import Event, EventRegistration, User
from campus_events.models.enums import EventCategory, EventStatus, RegistrationStatus, UserRole
from campus_events.utils.time import utcnow


@pytest.fixture
def app():
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "JWT_SECRET_KEY": "test-secret-key-that-is-long-enough-for-hs256",
            "RATELIMIT_ENABLED": False,
            "DISPATCH_ASYNC": False,
            "CLIENT_URL": "http://campus.test",
        }
    )
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make_user(role=UserRole.STUDENT, first_name=None):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            email=f"user{n}@campus.test",
            first_name=first_name or f"User{n}",
            last_name="Test",
            role=role,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def organizer(make_user):
    return make_user(UserRole.ORGANIZER, "Olivia")


@pytest.fixture
def student(make_user):
    return make_user(UserRole.STUDENT, "Sam")


@pytest.fixture
def make_event(organizer):
    """Insert an event directly, bypassing service validation."""

    def _make_event(
        max_registrations=10,
        status=EventStatus.PUBLISHED,
        start_in=timedelta(days=7),
        duration=timedelta(hours=2),
        **overrides,
    ):
        start = utcnow() + start_in
        attrs = {
            "title": "Intro to Robotics",
            "description": "Build a line-following robot.",
            "category": EventCategory.ACADEMIC,
            "organizer_id": organizer.id,
            "start_date": start,
            "end_date": start + duration,
            "location_name": "Engineering Hall 101",
            "location_address": "1 Campus Way",
            "location_is_virtual": False,
            "max_registrations": max_registrations,
            "current_registrations": 0,
            "status": status,
            "is_public": True,
        }
        attrs.update(overrides)
        event = Event(**attrs)
        db.session.add(event)
        db.session.commit()
        return event

    return _make_event


@pytest.fixture
def make_registration():
    """Insert a registration directly; keeps the event counter in step."""

    def _make_registration(event, user, status=RegistrationStatus.REGISTERED, waitlist_position=None):
        registration = EventRegistration(
            event_id=event.id,
            user_id=user.id,
            status=status,
            registered_at=utcnow(),
            waitlist_position=waitlist_position,
        )
        db.session.add(registration)
        if status == RegistrationStatus.REGISTERED:
            event.current_registrations += 1
        db.session.commit()
        return registration

    return _make_registration


@pytest.fixture
def auth_headers(app):
    def _auth_headers(user):
        token = create_access_token(identity=str(user.id))
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers

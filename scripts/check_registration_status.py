import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from campus_events import create_app
from campus_events.models import Event, EventRegistration
from campus_events.models.enums import RegistrationStatus, ACTIVE_REGISTRATION_STATUSES
from sqlalchemy import func
from campus_events.extensions import db

# Only REGISTERED records hold a seat; attendance marking releases it
SEAT_HOLDING_STATUSES = [RegistrationStatus.REGISTERED]


def audit_event(event):
    """Return a list of problems found for one event."""
    problems = []

    seats = EventRegistration.query.filter(
        EventRegistration.event_id == event.id,
        EventRegistration.status.in_(SEAT_HOLDING_STATUSES),
    ).count()
    if seats != event.current_registrations:
        problems.append(
            f"counter is {event.current_registrations} but {seats} registrations hold a seat"
        )

    if event.max_registrations is not None and event.current_registrations > event.max_registrations:
        problems.append(
            f"counter {event.current_registrations} exceeds capacity {event.max_registrations}"
        )

    positions = sorted(
        position
        for (position,) in db.session.query(EventRegistration.waitlist_position).filter(
            EventRegistration.event_id == event.id,
            EventRegistration.status == RegistrationStatus.WAITLISTED,
        )
    )
    if positions != list(range(1, len(positions) + 1)):
        problems.append(f"waitlist positions are not contiguous: {positions}")

    duplicates = (
        db.session.query(EventRegistration.user_id, func.count(EventRegistration.id))
        .filter(
            EventRegistration.event_id == event.id,
            EventRegistration.status.in_(ACTIVE_REGISTRATION_STATUSES),
        )
        .group_by(EventRegistration.user_id)
        .having(func.count(EventRegistration.id) > 1)
        .all()
    )
    for user_id, count in duplicates:
        problems.append(f"user {user_id} has {count} active registrations")

    return problems


def check_registration_status():
    """Audit the registration counter and waitlist of every event."""
    app = create_app()
    with app.app_context():
        events = Event.query.order_by(Event.id.asc()).all()
        failed = 0

        print(f"🔍 Auditing registrations for {len(events)} events")
        print("=" * 40)

        for event in events:
            problems = audit_event(event)
            if problems:
                failed += 1
                print(f"❌ Event {event.id} ({event.title}):")
                for problem in problems:
                    print(f"   - {problem}")

        if failed:
            print(f"\n{failed} event(s) with problems")
            return 1

        print("✅ All events consistent")
        return 0


if __name__ == "__main__":
    sys.exit(check_registration_status())

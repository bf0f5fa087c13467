from datetime import timedelta

from campus_events.models.enums import EventStatus, RegistrationStatus
from campus_events.utils.time import utcnow


def iso(dt):
    return dt.isoformat().replace("+00:00", "Z")


class TestEnvelope:
    def test_health(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        body = response.get_json()
        assert body["success"] is True
        assert body["data"]["scheduler"] == {"running": False}

    def test_missing_token(self, client, make_event):
        event = make_event()
        response = client.post(f"/api/events/{event.id}/register")

        assert response.status_code == 401
        assert response.get_json()["success"] is False

    def test_not_found_envelope(self, client, student, auth_headers):
        response = client.post("/api/events/4040/register", headers=auth_headers(student))

        assert response.status_code == 404
        assert response.get_json() == {"success": False, "message": "Event not found"}

    def test_unknown_route(self, client):
        response = client.get("/api/nowhere")

        assert response.status_code == 404
        assert response.get_json()["success"] is False


class TestEventRoutes:
    def test_create_and_publish(self, client, organizer, auth_headers):
        start = utcnow() + timedelta(days=14)
        payload = {
            "title": "Film Society Screening",
            "description": "A classic double feature.",
            "category": "Social",
            "start_date": iso(start),
            "end_date": iso(start + timedelta(hours=4)),
            "location": {"name": "Auditorium"},
            "max_registrations": 100,
        }

        created = client.post("/api/events", json=payload, headers=auth_headers(organizer))
        assert created.status_code == 201
        event = created.get_json()["data"]
        assert event["status"] == "DRAFT"
        assert event["location"]["name"] == "Auditorium"
        assert event["available_spots"] == 100

        published = client.post(f"/api/events/{event['id']}/publish", headers=auth_headers(organizer))
        assert published.status_code == 200
        assert published.get_json()["data"]["status"] == "PUBLISHED"

        listing = client.get("/api/events").get_json()["data"]
        assert [e["id"] for e in listing["events"]] == [event["id"]]

    def test_publish_missing_location_lists_field(self, client, organizer, auth_headers, make_event):
        event = make_event(status=EventStatus.DRAFT, location_name=None)

        response = client.post(f"/api/events/{event.id}/publish", headers=auth_headers(organizer))

        assert response.status_code == 400
        body = response.get_json()
        assert body["success"] is False
        assert body["errors"] == ["location.name"]

    def test_create_without_body(self, client, organizer, auth_headers):
        response = client.post("/api/events", headers=auth_headers(organizer))
        assert response.status_code == 400

    def test_draft_detail_hidden_from_anonymous(self, client, make_event, organizer, auth_headers):
        event = make_event(status=EventStatus.DRAFT)

        assert client.get(f"/api/events/{event.id}").status_code == 403
        response = client.get(f"/api/events/{event.id}", headers=auth_headers(organizer))
        assert response.status_code == 200

    def test_update_and_cancel(self, client, make_event, organizer, auth_headers):
        event = make_event()

        updated = client.put(
            f"/api/events/{event.id}", json={"title": "Robotics 201"}, headers=auth_headers(organizer)
        )
        assert updated.status_code == 200
        assert updated.get_json()["data"]["title"] == "Robotics 201"

        cancelled = client.post(f"/api/events/{event.id}/cancel", headers=auth_headers(organizer))
        assert cancelled.get_json()["data"]["status"] == "CANCELLED"

        again = client.post(f"/api/events/{event.id}/cancel", headers=auth_headers(organizer))
        assert again.status_code == 400

    def test_delete(self, client, make_event, organizer, auth_headers):
        event = make_event()

        response = client.delete(f"/api/events/{event.id}", headers=auth_headers(organizer))

        assert response.status_code == 200
        assert response.get_json()["data"]["deleted"] is True

    def test_capacity_and_organizer_listing(self, client, make_event, organizer, auth_headers):
        event = make_event(max_registrations=3)

        capacity = client.get(f"/api/events/{event.id}/capacity").get_json()["data"]
        assert capacity["available_spots"] == 3

        mine = client.get("/api/events/organizer/me", headers=auth_headers(organizer)).get_json()["data"]
        assert [e["id"] for e in mine["events"]] == [event.id]

    def test_invalid_status_filter(self, client, organizer, auth_headers):
        response = client.get("/api/events/organizer/me?status=bogus", headers=auth_headers(organizer))
        assert response.status_code == 400


class TestRegistrationRoutes:
    def test_register_then_waitlist_status_codes(self, client, make_event, make_user, auth_headers):
        event = make_event(max_registrations=1)
        first, second = make_user(), make_user()

        registered = client.post(f"/api/events/{event.id}/register", headers=auth_headers(first))
        assert registered.status_code == 201
        assert registered.get_json()["data"]["status"] == "REGISTERED"

        waitlisted = client.post(f"/api/events/{event.id}/register", headers=auth_headers(second))
        assert waitlisted.status_code == 200
        data = waitlisted.get_json()["data"]
        assert data["status"] == "WAITLISTED"
        assert data["waitlist_position"] == 1

        duplicate = client.post(f"/api/events/{event.id}/register", headers=auth_headers(second))
        assert duplicate.status_code == 409

    def test_cancel_promotes(self, client, make_event, make_user, auth_headers):
        event = make_event(max_registrations=1)
        first, second = make_user(), make_user()
        reg_id = client.post(
            f"/api/events/{event.id}/register", headers=auth_headers(first)
        ).get_json()["data"]["registration"]["id"]
        waiting_id = client.post(
            f"/api/events/{event.id}/register", headers=auth_headers(second)
        ).get_json()["data"]["registration"]["id"]

        response = client.delete(f"/api/registrations/{reg_id}", headers=auth_headers(first))

        assert response.status_code == 200
        assert response.get_json()["data"]["promoted_registration_id"] == waiting_id

        mine = client.get("/api/registrations/me", headers=auth_headers(second)).get_json()["data"]
        assert mine["registrations"][0]["status"] == "REGISTERED"

    def test_cancel_someone_elses(self, client, make_event, make_user, make_registration, auth_headers):
        event = make_event()
        owner, other = make_user(), make_user()
        registration = make_registration(event, owner)

        response = client.delete(f"/api/registrations/{registration.id}", headers=auth_headers(other))
        assert response.status_code == 403

    def test_closed_event(self, client, make_event, student, auth_headers):
        event = make_event(status=EventStatus.CANCELLED)

        response = client.post(f"/api/events/{event.id}/register", headers=auth_headers(student))

        assert response.status_code == 400
        assert response.get_json()["message"] == "Cannot register for cancelled event"

    def test_eligibility(self, client, make_event, student, auth_headers):
        event = make_event()
        response = client.get(f"/api/events/{event.id}/eligibility", headers=auth_headers(student))
        assert response.get_json()["data"]["eligible"] is True

    def test_attendance(self, client, make_event, make_registration, organizer, student, auth_headers):
        event = make_event(start_in=timedelta(days=-2), status=EventStatus.COMPLETED)
        registration = make_registration(event, student)

        response = client.post(
            f"/api/registrations/{registration.id}/attendance",
            json={"attended": False},
            headers=auth_headers(organizer),
        )

        assert response.status_code == 200
        assert response.get_json()["data"]["status"] == RegistrationStatus.NO_SHOW.value

        bad = client.post(
            f"/api/registrations/{registration.id}/attendance",
            json={"attended": "yes"},
            headers=auth_headers(organizer),
        )
        assert bad.status_code == 400

    def test_attendees_and_stats(self, client, make_event, make_registration, make_user, organizer, student, auth_headers):
        event = make_event()
        make_registration(event, make_user())

        attendees = client.get(f"/api/events/{event.id}/attendees", headers=auth_headers(organizer))
        assert attendees.get_json()["data"]["pagination"]["total_count"] == 1

        stats = client.get(f"/api/events/{event.id}/registration-stats", headers=auth_headers(student))
        assert stats.status_code == 403

    def test_registration_detail(self, client, make_event, make_registration, student, auth_headers):
        registration = make_registration(make_event(), student)

        response = client.get(f"/api/registrations/{registration.id}", headers=auth_headers(student))

        data = response.get_json()["data"]
        assert data["event"]["id"] == registration.event_id
        assert data["user"]["id"] == student.id


class TestNotificationRoutes:
    def test_inbox_flow(self, client, make_event, student, auth_headers):
        event = make_event()
        client.post(f"/api/events/{event.id}/register", headers=auth_headers(student))

        count = client.get("/api/notifications/unread-count", headers=auth_headers(student))
        assert count.get_json()["data"]["count"] == 1

        inbox = client.get("/api/notifications", headers=auth_headers(student)).get_json()["data"]
        notification_id = inbox["notifications"][0]["id"]
        assert inbox["notifications"][0]["type"] == "REGISTRATION_CONFIRMED"

        read = client.patch(f"/api/notifications/{notification_id}/read", headers=auth_headers(student))
        assert read.get_json()["data"]["status"] == "READ"

        read_all = client.patch("/api/notifications/read-all", headers=auth_headers(student))
        assert read_all.get_json()["data"]["modified_count"] == 0

        archived = client.patch(f"/api/notifications/{notification_id}/archive", headers=auth_headers(student))
        assert archived.get_json()["data"]["status"] == "ARCHIVED"

        deleted = client.delete(f"/api/notifications/{notification_id}", headers=auth_headers(student))
        assert deleted.status_code == 200
        assert deleted.get_json()["data"] is None

    def test_other_users_notification(self, client, make_event, make_user, auth_headers):
        event = make_event()
        owner, other = make_user(), make_user()
        client.post(f"/api/events/{event.id}/register", headers=auth_headers(owner))
        inbox = client.get("/api/notifications", headers=auth_headers(owner)).get_json()["data"]
        notification_id = inbox["notifications"][0]["id"]

        response = client.patch(f"/api/notifications/{notification_id}/read", headers=auth_headers(other))
        assert response.status_code == 403

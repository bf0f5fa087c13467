from flask import Blueprint, current_app, request
from flask_jwt_extended import get_jwt_identity, jwt_required, verify_jwt_in_request
from campus_events.extensions import limiter
from campus_events.models.enums import EventStatus, RegistrationStatus
from campus_events.repositories.user_repository import UserRepository
from campus_events.services.event_service import EventService
from campus_events.services.registration_service import RegistrationService
from campus_events.utils.responses import (
    get_enum_arg,
    get_json_body,
    get_page_args,
    success_response,
)

event_bp = Blueprint("event", __name__)


def _optional_user_id():
    verify_jwt_in_request(optional=True)
    identity = get_jwt_identity()
    return int(identity) if identity is not None else None


@event_bp.route("/events", methods=["GET"])
def get_events():
    page, limit = get_page_args()
    filters = {
        "category": request.args.get("category") or None,
        "upcoming": request.args.get("upcoming", "false").lower() in ["true", "1", "t"],
    }
    result = EventService.get_events(filters, page, limit)
    return success_response(result, "Events retrieved successfully")


@event_bp.route("/events", methods=["POST"])
@jwt_required()
def create_event():
    current_user_id = int(get_jwt_identity())
    event = EventService.create_event(get_json_body(), current_user_id)
    return success_response(event.to_dict(), "Event created successfully", 201)


@event_bp.route("/events/organizer/me", methods=["GET"])
@jwt_required()
def get_my_events():
    current_user_id = int(get_jwt_identity())
    page, limit = get_page_args()
    status = get_enum_arg("status", EventStatus)
    result = EventService.get_events_by_organizer(current_user_id, status, page, limit)
    return success_response(result, "Organizer events retrieved successfully")


@event_bp.route("/events/<int:event_id>", methods=["GET"])
def get_event(event_id):
    event = EventService.get_event(event_id, _optional_user_id())
    return success_response(event.to_dict(), "Event retrieved successfully")


@event_bp.route("/events/<int:event_id>", methods=["PUT"])
@jwt_required()
def update_event(event_id):
    current_user_id = int(get_jwt_identity())
    event = EventService.update_event(event_id, get_json_body(), current_user_id)
    return success_response(event.to_dict(), "Event updated successfully")


@event_bp.route("/events/<int:event_id>", methods=["DELETE"])
@jwt_required()
def delete_event(event_id):
    current_user_id = int(get_jwt_identity())
    user = UserRepository.find_by_id(current_user_id)
    is_admin = bool(user and user.is_admin)

    result = EventService.delete_event(event_id, current_user_id, is_admin)
    current_app.logger.info(f"Delete event {event_id} by user {current_user_id}: {result['message']}")
    return success_response(result, result["message"])


@event_bp.route("/events/<int:event_id>/publish", methods=["POST"])
@jwt_required()
def publish_event(event_id):
    current_user_id = int(get_jwt_identity())
    event = EventService.publish_event(event_id, current_user_id)
    return success_response(event.to_dict(), "Event published successfully")


@event_bp.route("/events/<int:event_id>/cancel", methods=["POST"])
@jwt_required()
def cancel_event(event_id):
    current_user_id = int(get_jwt_identity())
    event = EventService.cancel_event(event_id, current_user_id)
    return success_response(event.to_dict(), "Event cancelled successfully")


@event_bp.route("/events/<int:event_id>/capacity", methods=["GET"])
def get_event_capacity(event_id):
    return success_response(
        EventService.get_event_capacity(event_id), "Capacity retrieved successfully"
    )


@event_bp.route("/events/<int:event_id>/register", methods=["POST"])
@jwt_required()
@limiter.limit("20 per minute")
def register_for_event(event_id):
    current_user_id = int(get_jwt_identity())
    result = RegistrationService.register_for_event(current_user_id, event_id)

    status_code = 201 if result["status"] == RegistrationStatus.REGISTERED.value else 200
    data = {
        "status": result["status"],
        "registration": result["registration"],
        "waitlist_position": result["waitlist_position"],
    }
    return success_response(data, result["message"], status_code)


@event_bp.route("/events/<int:event_id>/eligibility", methods=["GET"])
@jwt_required()
def check_eligibility(event_id):
    current_user_id = int(get_jwt_identity())
    result = RegistrationService.check_eligibility(current_user_id, event_id)
    return success_response(result, "Eligibility checked")


@event_bp.route("/events/<int:event_id>/attendees", methods=["GET"])
@jwt_required()
def get_event_attendees(event_id):
    current_user_id = int(get_jwt_identity())
    page, limit = get_page_args(default_limit=100)
    status = get_enum_arg("status", RegistrationStatus, RegistrationStatus.REGISTERED)
    result = RegistrationService.get_event_attendees(event_id, current_user_id, status, page, limit)
    return success_response(result, "Attendees retrieved successfully")


@event_bp.route("/events/<int:event_id>/registration-stats", methods=["GET"])
@jwt_required()
def get_registration_stats(event_id):
    current_user_id = int(get_jwt_identity())
    result = RegistrationService.get_registration_stats(event_id, current_user_id)
    return success_response(result, "Registration statistics retrieved successfully")

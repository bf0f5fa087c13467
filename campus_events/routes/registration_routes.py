from flask import Blueprint
from flask_jwt_extended import get_jwt_identity, jwt_required
from campus_events.exceptions import ValidationError
from campus_events.models.enums import RegistrationStatus
from campus_events.services.registration_service import RegistrationService
from campus_events.utils.responses import (
    get_enum_arg,
    get_json_body,
    get_page_args,
    success_response,
)

registration_bp = Blueprint("registration", __name__)


@registration_bp.route("/registrations/me", methods=["GET"])
@jwt_required()
def get_my_registrations():
    current_user_id = int(get_jwt_identity())
    page, limit = get_page_args(default_limit=50)
    status = get_enum_arg("status", RegistrationStatus)
    result = RegistrationService.get_user_registrations(current_user_id, status, page, limit)
    return success_response(result, "Registrations retrieved successfully")


@registration_bp.route("/registrations/<int:registration_id>", methods=["GET"])
@jwt_required()
def get_registration(registration_id):
    current_user_id = int(get_jwt_identity())
    registration = RegistrationService.get_registration_details(registration_id, current_user_id)
    return success_response(
        registration.to_dict(include_event=True, include_user=True),
        "Registration retrieved successfully",
    )


@registration_bp.route("/registrations/<int:registration_id>", methods=["DELETE"])
@jwt_required()
def cancel_registration(registration_id):
    current_user_id = int(get_jwt_identity())
    result = RegistrationService.cancel_registration(registration_id, current_user_id)
    data = {
        "registration": result["registration"],
        "promoted_registration_id": result["promoted_registration_id"],
    }
    return success_response(data, result["message"])


@registration_bp.route("/registrations/<int:registration_id>/attendance", methods=["POST"])
@jwt_required()
def mark_attendance(registration_id):
    current_user_id = int(get_jwt_identity())
    data = get_json_body()
    attended = data.get("attended", True)
    if not isinstance(attended, bool):
        raise ValidationError("attended must be a boolean")

    registration = RegistrationService.mark_attendance(registration_id, current_user_id, attended)
    message = "Attendance marked successfully" if attended else "Marked as no-show"
    return success_response(registration.to_dict(include_user=True), message)

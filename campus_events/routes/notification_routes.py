from flask import Blueprint
from flask_jwt_extended import get_jwt_identity, jwt_required
from campus_events.models.enums import NotificationStatus, NotificationType
from campus_events.services.notification_service import NotificationService
from campus_events.utils.responses import get_enum_arg, get_page_args, success_response

notification_bp = Blueprint("notification", __name__)


@notification_bp.route("/notifications", methods=["GET"])
@jwt_required()
def get_notifications():
    current_user_id = int(get_jwt_identity())
    page, limit = get_page_args()
    status = get_enum_arg("status", NotificationStatus)
    notification_type = get_enum_arg("type", NotificationType)
    result = NotificationService.get_user_notifications(
        current_user_id, status, notification_type, page, limit
    )
    return success_response(result, "Notifications retrieved successfully")


@notification_bp.route("/notifications/unread-count", methods=["GET"])
@jwt_required()
def get_unread_count():
    current_user_id = int(get_jwt_identity())
    count = NotificationService.get_unread_count(current_user_id)
    return success_response({"count": count}, "Unread count retrieved successfully")


@notification_bp.route("/notifications/read-all", methods=["PATCH"])
@jwt_required()
def mark_all_as_read():
    current_user_id = int(get_jwt_identity())
    modified = NotificationService.mark_all_as_read(current_user_id)
    return success_response({"modified_count": modified}, "All notifications marked as read")


@notification_bp.route("/notifications/<int:notification_id>/read", methods=["PATCH"])
@jwt_required()
def mark_as_read(notification_id):
    current_user_id = int(get_jwt_identity())
    notification = NotificationService.mark_as_read(notification_id, current_user_id)
    return success_response(notification.to_dict(), "Notification marked as read")


@notification_bp.route("/notifications/<int:notification_id>/archive", methods=["PATCH"])
@jwt_required()
def archive_notification(notification_id):
    current_user_id = int(get_jwt_identity())
    notification = NotificationService.archive(notification_id, current_user_id)
    return success_response(notification.to_dict(), "Notification archived")


@notification_bp.route("/notifications/<int:notification_id>", methods=["DELETE"])
@jwt_required()
def delete_notification(notification_id):
    current_user_id = int(get_jwt_identity())
    NotificationService.delete_notification(notification_id, current_user_id)
    return success_response(None, "Notification deleted")

from flask import jsonify, request
from campus_events.exceptions import ValidationError


def success_response(data=None, message="Success", status_code=200):
    return jsonify({"success": True, "message": message, "data": data}), status_code


def get_json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("No data provided")
    return data


def get_enum_arg(name, enum_cls, default=None):
    """Read an optional enum from the query string, rejecting unknown values."""
    value = request.args.get(name)
    if value is None or value == "":
        return default
    try:
        return enum_cls(value.upper())
    except ValueError:
        valid = ", ".join(e.value for e in enum_cls)
        raise ValidationError(f"Invalid {name}. Must be one of: {valid}")


def get_page_args(default_limit=20):
    return (
        request.args.get("page", 1, type=int),
        request.args.get("limit", default_limit, type=int),
    )

from datetime import datetime
from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from campus.attendance import fetch_attendance, mark_attendance, record_scan, today_for_class
from campus.extensions import limiter
from campus_utils.decorators import current_profile, role_required
from campus_utils.errors import CampusError, BadRequest

attendance_bp = Blueprint("attendance", __name__)


def _parse_date(value, field):
    if not value:
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise BadRequest(f"Invalid {field}, use YYYY-MM-DD")


def _parse_int(value, field, required=False):
    if value is None or value == "":
        if required:
            raise BadRequest(f"Missing {field}")
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadRequest(f"Invalid {field}")


@attendance_bp.route('', methods=['GET'])
@jwt_required()
def list_attendance():
    profile = current_profile()
    if not profile:
        return jsonify({"error": "Profile not found"}), 404

    try:
        records, summary = fetch_attendance(
            profile,
            student_id=_parse_int(request.args.get("student_id"), "student_id"),
            class_id=_parse_int(request.args.get("class_id"), "class_id"),
            date_from=_parse_date(request.args.get("from"), "from"),
            date_to=_parse_date(request.args.get("to"), "to"),
        )
    except CampusError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({
        "records": [r.to_dict() for r in records],
        "summary": summary,
    }), 200


@attendance_bp.route('/mark', methods=['POST'])
@limiter.limit("120 per minute")
@jwt_required()
@role_required('teacher')
def mark():
    profile = current_profile()
    data = request.get_json(silent=True) or {}

    try:
        if not data.get("status"):
            raise BadRequest("Missing status")
        record = mark_attendance(
            profile,
            student_id=_parse_int(data.get("student_id"), "student_id", required=True),
            class_id=_parse_int(data.get("class_id"), "class_id", required=True),
            status=data.get("status"),
            on_date=_parse_date(data.get("date"), "date"),
            notes=data.get("notes"),
            check_in_time=data.get("check_in_time"),
            location_verified=data.get("location_verified", True),
        )
    except CampusError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({
        "message": f"Student marked as {record.status}",
        "record": record.to_dict(),
    }), 200


@attendance_bp.route('/scan', methods=['POST'])
@limiter.limit("60 per minute")
@jwt_required()
@role_required('student', 'teacher')
def scan():
    profile = current_profile()
    data = request.get_json(silent=True) or {}
    if not data.get("payload"):
        return jsonify({"error": "Missing payload"}), 400

    try:
        record = record_scan(profile, data.get("payload"))
    except CampusError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({
        "message": "Attendance has been recorded",
        "record": record.to_dict(),
    }), 200


@attendance_bp.route('/class/<int:class_id>/today', methods=['GET'])
@jwt_required()
@role_required('teacher')
def class_today(class_id):
    try:
        records = today_for_class(current_profile(), class_id)
    except CampusError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify([r.to_dict() for r in records]), 200

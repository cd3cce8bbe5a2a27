from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required
from campus.dashboard import build_dashboard
from campus_utils.decorators import current_profile
from campus_utils.errors import CampusError

dashboard_bp = Blueprint('dashboard', __name__)

@dashboard_bp.route('/summary', methods=['GET'])
@jwt_required()
def summary():
    profile = current_profile()
    if not profile:
        return jsonify({"error": "Profile not found"}), 404

    try:
        payload = build_dashboard(profile)
    except CampusError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify(payload), 200

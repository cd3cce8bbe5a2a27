from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from campus.extensions import db
from campus.models import Notification
from campus_utils.decorators import current_profile

notifications_bp = Blueprint('notifications', __name__)


@notifications_bp.route('', methods=['GET'])
@jwt_required()
def list_notifications():
    profile = current_profile()
    if not profile:
        return jsonify({"error": "Profile not found"}), 404

    limit = request.args.get("limit", 20, type=int)
    limit = limit if 0 < limit <= 100 else 20

    notifications = (
        Notification.query.filter_by(recipient_id=profile.id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .all()
    )
    return jsonify({
        "notifications": [n.to_dict() for n in notifications],
        "unread": Notification.query.filter_by(recipient_id=profile.id, read=False).count(),
    }), 200


@notifications_bp.route('/<int:notification_id>/read', methods=['POST'])
@jwt_required()
def mark_read(notification_id):
    profile = current_profile()
    if not profile:
        return jsonify({"error": "Profile not found"}), 404

    notification = Notification.query.filter_by(id=notification_id, recipient_id=profile.id).first()
    if not notification:
        return jsonify({"error": "Notification not found"}), 404

    notification.read = True
    db.session.commit()
    return jsonify(notification.to_dict()), 200

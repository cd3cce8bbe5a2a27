from functools import wraps
from flask_jwt_extended import get_jwt_identity
from flask import jsonify
from campus.extensions import db
from campus.models import Profile


def current_profile():
    """Profile behind the request's JWT identity, or None."""
    identity = get_jwt_identity()
    if not identity:
        return None
    try:
        return db.session.get(Profile, int(identity))
    except (TypeError, ValueError):
        return None


def role_required(*allowed_roles):
    """
    Restrict access to profiles with specific roles.
    Usage: @role_required("admin", "teacher")
    Must sit below @jwt_required().
    """
    allowed_roles = set(role.lower() for role in allowed_roles)

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            profile = current_profile()
            if not profile:
                return jsonify({"error": "Profile not found"}), 401

            if profile.role.value not in allowed_roles:
                return jsonify({"error": "Access forbidden: insufficient permissions"}), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator

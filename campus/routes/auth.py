from flask import Blueprint, request, jsonify, current_app, make_response
from flask_jwt_extended import (
    create_access_token, create_refresh_token, jwt_required,
    get_jwt_identity, get_jwt
)
from campus.models import Profile, Role, TokenBlocklist
from campus.extensions import db, limiter
from campus_utils.audit import log_event
from campus_utils.decorators import current_profile
from campus_utils.errors import InvalidRole
from datetime import datetime, timedelta
import re

auth_bp = Blueprint('auth', __name__)
SELF_SERVICE_ROLES = {Role.student, Role.teacher, Role.parent}


def _set_access_cookie(response, access_token):
    response.set_cookie(
        "access_token_cookie",
        access_token,
        max_age=60 * 60,  # 1 hour
        httponly=True,
        secure=current_app.config["JWT_COOKIE_SECURE"],
        samesite=current_app.config["JWT_COOKIE_SAMESITE"],
        path="/"
    )


def _access_token_for(profile):
    return create_access_token(
        identity=str(profile.id),
        expires_delta=timedelta(hours=1),
        additional_claims={"role": profile.role.value}
    )


@auth_bp.route('/register', methods=['POST'])
@limiter.limit("5 per minute", override_defaults=False)
def register():
    data = request.get_json(silent=True) or {}
    username = (data.get('username') or '').strip()
    password = data.get('password') or ''
    first_name = (data.get('first_name') or '').strip()
    last_name = (data.get('last_name') or '').strip()

    if not username or not password or not data.get('role') or not first_name or not last_name:
        return jsonify({"error": "Username, password, role, first_name and last_name are required"}), 400

    try:
        role = Role.parse(data.get('role'))
    except InvalidRole as e:
        return jsonify(e.to_dict()), e.status_code

    if role not in SELF_SERVICE_ROLES:
        return jsonify({"error": f"Role '{role.value}' cannot be self-registered"}), 403

    if Profile.query.filter_by(username=username).first():
        return jsonify({"error": "Username already exists"}), 400

    profile = Profile(
        username=username,
        first_name=first_name,
        last_name=last_name,
        role=role,
        email=data.get('email') or None,
        phone=data.get('phone') or None,
    )
    profile.set_password(password)

    db.session.add(profile)
    db.session.commit()

    log_event("REGISTER", user_id=profile.id, ip=request.remote_addr, description=f"{username} as {role.value}")
    return jsonify({
        "message": "Profile created",
        "profile_id": profile.id,
        "role": role.value
    }), 201


@auth_bp.route('/login', methods=['POST'])
@limiter.limit("5 per minute", override_defaults=False)
def login():
    data = request.get_json(silent=True) or {}
    username = (data.get('username') or '').strip()
    password = data.get('password') or ''
    ip = request.remote_addr

    if not username or not password:
        return jsonify({"error": "Username and password are required"}), 400

    if not re.match(r'^[\w.@+-]{3,}$', username):
        return jsonify({"error": "Invalid username format"}), 400

    profile = Profile.query.filter_by(username=username).first()

    if profile and profile.check_password(password):
        access_token = _access_token_for(profile)
        refresh_token = create_refresh_token(
            identity=str(profile.id),
            expires_delta=timedelta(days=7)
        )

        response = make_response(jsonify({"message": "Login successful", "profile": profile.to_dict()}))
        _set_access_cookie(response, access_token)
        response.set_cookie(
            "refresh_token_cookie",
            refresh_token,
            max_age=60 * 60 * 24 * 7,  # 7 days
            httponly=True,
            secure=current_app.config["JWT_COOKIE_SECURE"],
            samesite=current_app.config["JWT_COOKIE_SAMESITE"],
            path="/auth/refresh"
        )

        log_event("LOGIN_SUCCESS", user_id=profile.id, ip=ip, description=f"{username} logged in")
        return response

    log_event("LOGIN_FAILED", ip=ip, description=f"Failed login attempt for {username}", level="WARNING")
    return jsonify({"error": "Invalid username or password"}), 401


@auth_bp.route('/me', methods=['GET'])
@jwt_required()
def get_current_profile():
    profile = current_profile()
    if not profile:
        return jsonify({"error": "Profile not found"}), 404

    return jsonify(profile.to_dict()), 200


@auth_bp.route('/refresh', methods=['POST'])
@jwt_required(refresh=True, locations=["cookies"])
def refresh_access_token():
    profile = current_profile()
    if not profile:
        return jsonify({"error": "Profile not found"}), 404

    response = make_response(jsonify({"message": "Token refreshed"}))
    _set_access_cookie(response, _access_token_for(profile))

    log_event("REFRESH_TOKEN", user_id=profile.id, ip=request.remote_addr)
    return response


@auth_bp.route("/logout", methods=["POST"])
@jwt_required()
def logout():
    claims = get_jwt()
    profile_id = get_jwt_identity()
    expires = datetime.fromtimestamp(claims["exp"])

    token_block = TokenBlocklist(
        jti=claims["jti"],
        token_type=claims.get("type", "access"),
        profile_id=int(profile_id),
        expires_at=expires,
    )
    db.session.add(token_block)
    db.session.commit()

    response = make_response(jsonify({"message": "Successfully logged out"}))
    response.delete_cookie("access_token_cookie", path="/")
    response.delete_cookie("refresh_token_cookie", path="/auth/refresh")

    log_event("LOGOUT", user_id=profile_id, ip=request.remote_addr)
    return response

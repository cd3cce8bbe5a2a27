from flask import Blueprint, request, jsonify, current_app
from flask_cors import cross_origin
from flask_jwt_extended import jwt_required, get_jwt_identity
from campus.chatbot import chat, FALLBACK_RESPONSE
from campus.completion import get_completer
from campus.insights import analyze, FALLBACK_INSIGHTS
from campus.models import Role
from campus_utils.access_control import resolve_caller
from campus_utils.audit import log_event
from campus_utils.errors import (
    CampusError, BadRequest, Unauthorized, Forbidden, NotFound, DataUnavailable, UpstreamFailure,
)

functions_bp = Blueprint("functions", __name__)

PREFLIGHT_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


def _check_token_matches(user_id):
    """A request may only act as the profile its JWT belongs to."""
    identity = get_jwt_identity()
    if identity is None:
        raise Unauthorized("Sign in to request data for a user")
    if str(identity) != str(user_id):
        raise Forbidden("Token does not belong to the requested user")


def _failure(e, fallback_key, fallback):
    if isinstance(e, UpstreamFailure):
        log_event("COMPLETION_FAILED", ip=request.remote_addr, description=e.message, level="ERROR")
    current_app.logger.warning("%s failed: %s", request.path, e.message)
    return jsonify({"error": e.message, fallback_key: fallback}), e.status_code


@functions_bp.route('/ai-analyzer', methods=['POST'])
@cross_origin(origins="*", allow_headers=PREFLIGHT_HEADERS)
@jwt_required(optional=True)
def ai_analyzer():
    data = request.get_json(silent=True) or {}
    user_id = data.get("userId")
    user_role = data.get("userRole")

    try:
        if not user_id or not user_role:
            raise BadRequest("User ID and role are required")
        _check_token_matches(user_id)
        caller = resolve_caller(user_id, user_role)
        result = analyze(
            caller,
            data.get("analysisType") or "attendance",
            data.get("timeframe") or "30days",
            get_completer(),
        )
    except CampusError as e:
        return _failure(e, "insights", FALLBACK_INSIGHTS)
    except Exception:
        current_app.logger.exception("Unexpected error in ai-analyzer")
        return jsonify({"error": "Server error", "insights": FALLBACK_INSIGHTS}), 500

    return jsonify(result), 200


@functions_bp.route('/ai-chatbot', methods=['POST'])
@cross_origin(origins="*", allow_headers=PREFLIGHT_HEADERS)
@jwt_required(optional=True)
def ai_chatbot():
    data = request.get_json(silent=True) or {}
    message = data.get("message")
    user_id = data.get("userId")
    user_role = data.get("userRole")

    try:
        if not isinstance(message, str) or not message.strip():
            raise BadRequest("Message is required")
        role = Role.parse(user_role) if user_role else None

        caller = None
        if user_id:
            _check_token_matches(user_id)
            try:
                caller = resolve_caller(user_id, role)
            except (NotFound, DataUnavailable) as e:
                current_app.logger.info("Chat without user context for %s: %s", user_id, e.message)

        result = chat(message, get_completer(), caller=caller, role=role)
    except CampusError as e:
        return _failure(e, "response", FALLBACK_RESPONSE)
    except Exception:
        current_app.logger.exception("Unexpected error in ai-chatbot")
        return jsonify({"error": "Server error", "response": FALLBACK_RESPONSE}), 500

    return jsonify(result), 200

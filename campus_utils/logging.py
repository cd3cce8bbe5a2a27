from flask import request, jsonify, make_response
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
from datetime import datetime
from campus.extensions import db
from campus.models import AuditLog


def log_rate_limit_violation(request_limit):
    try:
        verify_jwt_in_request(optional=True)
        identity = get_jwt_identity()
        profile_id = int(identity) if identity else None
    except (JWTExtendedException, PyJWTError, ValueError):
        profile_id = None

    log = AuditLog(
        profile_id=profile_id,
        action=f"RATE_LIMIT_EXCEEDED: {request.method} {request.path} ({request_limit.limit})",
        ip_address=request.remote_addr,
        timestamp=datetime.utcnow(),
    )
    db.session.add(log)
    db.session.commit()

    return make_response(jsonify({
        "error": "Rate limit exceeded. Please slow down."
    }), 429)

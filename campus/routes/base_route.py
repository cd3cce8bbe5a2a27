from flask import Blueprint, jsonify
from sqlalchemy.exc import SQLAlchemyError

base_bp = Blueprint("base", __name__)

@base_bp.route("/")
def home():
    return jsonify({"message": "Welcome to the campus attendance API!"})

@base_bp.route("/api/test-db")
def test_db():
    from campus.models import Profile
    try:
        count = Profile.query.count()
        return {"status": "success", "profiles": count}
    except SQLAlchemyError as e:
        return {"status": "error", "message": str(e)}, 500

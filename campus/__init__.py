from flask import Flask, jsonify
from flask_cors import CORS
from .config import Config
from campus.extensions import db, jwt, limiter, migrate, completion_client
from campus.models import TokenBlocklist
from campus.routes import register_routes
from campus_utils.errors import CampusError


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    db.init_app(app)
    jwt.init_app(app)
    CORS(app, origins=app.config["CORS_ORIGINS"], supports_credentials=True)
    limiter.init_app(app)
    completion_client.init_app(app)
    register_routes(app)
    migrate.init_app(app, db)

    @jwt.token_in_blocklist_loader
    def check_if_token_revoked(jwt_header, jwt_payload):
        jti = jwt_payload["jti"]
        token = db.session.query(TokenBlocklist).filter_by(jti=jti).first()
        return token is not None

    @app.errorhandler(CampusError)
    def handle_campus_error(error):
        return jsonify(error.to_dict()), error.status_code

    with app.app_context():
        db.create_all()

    return app

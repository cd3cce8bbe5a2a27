from .auth import auth_bp
from .attendance import attendance_bp
from .dashboard import dashboard_bp
from .functions import functions_bp
from .notifications import notifications_bp
from .base_route import base_bp

def register_routes(app):
    app.register_blueprint(base_bp)
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(attendance_bp, url_prefix='/attendance')
    app.register_blueprint(dashboard_bp, url_prefix='/dashboard')
    app.register_blueprint(notifications_bp, url_prefix='/notifications')
    app.register_blueprint(functions_bp, url_prefix='/functions')

from .base_route import base_bp
from .auth import auth_bp
from .users import users_bp
from .classes import classes_bp
from .students import students_bp
from .grades import grades_bp
from .attendance import attendance_bp
from .behavior import behavior_bp
from .notifications import notifications_bp
from .reports import reports_bp
from .dashboard import dashboard_bp
from .settings import settings_bp

def register_routes(app):
    app.register_blueprint(base_bp)
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(users_bp, url_prefix='/users')
    app.register_blueprint(classes_bp, url_prefix='/classes')
    app.register_blueprint(students_bp, url_prefix='/students')
    app.register_blueprint(grades_bp, url_prefix='/grades')
    app.register_blueprint(attendance_bp, url_prefix='/attendance')
    app.register_blueprint(behavior_bp, url_prefix='/behavior')
    app.register_blueprint(notifications_bp, url_prefix='/notifications')
    app.register_blueprint(reports_bp, url_prefix='/reports')
    app.register_blueprint(dashboard_bp, url_prefix='/dashboard')
    app.register_blueprint(settings_bp, url_prefix='/settings')

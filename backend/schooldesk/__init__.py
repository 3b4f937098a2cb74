from flask import Flask
from .config import Config
from .extensions import db, jwt, limiter, migrate, cors
from .errors import register_error_handlers


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    db.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, origins=app.config["CORS_ORIGINS"], supports_credentials=True)
    limiter.init_app(app)
    migrate.init_app(app, db)

    from .models import TokenBlocklist
    from .routes import register_routes

    register_routes(app)
    register_error_handlers(app)

    @jwt.token_in_blocklist_loader
    def check_if_token_revoked(jwt_header, jwt_payload):
        jti = jwt_payload["jti"]
        token = db.session.query(TokenBlocklist).filter_by(jti=jti).first()
        return token is not None

    with app.app_context():
        db.create_all()

    return app

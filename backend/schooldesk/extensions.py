from flask_sqlalchemy import SQLAlchemy
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from flask_cors import CORS


def _on_breach(request_limit):
    from utils.logging import log_rate_limit_violation
    return log_rate_limit_violation(request_limit)


db = SQLAlchemy()
jwt = JWTManager()
migrate = Migrate()
cors = CORS()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200000 per day", "6000 per hour"],
    on_breach=_on_breach,
)

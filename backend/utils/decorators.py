from functools import wraps
from flask import jsonify
from flask_jwt_extended import get_jwt_identity
from schooldesk.extensions import db
from schooldesk.models import User
from utils.access_control import resolve_actor

def role_required(*allowed_roles):
    """
    Restrict access to users with specific roles and hand the resolved
    Actor to the view as the ``actor`` keyword argument.
    Usage: @role_required("admin", "teacher")
    """
    allowed_roles = set(role.lower() for role in allowed_roles)

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user_id = get_jwt_identity()
            if not user_id:
                return jsonify({"error": "Missing or invalid JWT token"}), 401

            user = db.session.get(User, int(user_id))
            if not user:
                return jsonify({"error": "User not found"}), 401

            if user.role_name not in allowed_roles:
                return jsonify({"error": "Access forbidden: insufficient permissions"}), 403

            kwargs["actor"] = resolve_actor(user)
            return fn(*args, **kwargs)
        return wrapper
    return decorator

def class_access_required(class_id, actor):
    """Return a 403 response tuple if the actor may not touch the class, else None."""
    if not actor.can_access_class(class_id):
        return jsonify({"error": "Unauthorized access to this class"}), 403
    return None

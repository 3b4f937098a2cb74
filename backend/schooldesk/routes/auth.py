from flask import Blueprint, request, jsonify, current_app, make_response
from flask_jwt_extended import (
    create_access_token, create_refresh_token, jwt_required,
    get_jwt_identity, get_jwt
)
from sqlalchemy import or_
from schooldesk.models import User, TokenBlocklist
from schooldesk.extensions import db, limiter
from schooldesk.services.portal import find_student, student_bundle
from utils.audit import log_event
from datetime import datetime, timezone
import re

auth_bp = Blueprint('auth', __name__)


def _issue_tokens(user):
    access_token = create_access_token(
        identity=str(user.id),
        additional_claims={"role": user.role_name}
    )
    refresh_token = create_refresh_token(identity=str(user.id))
    return access_token, refresh_token


def _set_cookie(response, name, token, max_age, path):
    response.set_cookie(
        name,
        token,
        max_age=max_age,
        httponly=True,
        secure=current_app.config["JWT_COOKIE_SECURE"],
        samesite=current_app.config["JWT_COOKIE_SAMESITE"],
        path=path
    )


@auth_bp.route('/login', methods=['POST'])
@limiter.limit("5 per minute", override_defaults=False)
def login():
    """Staff sign-in by username, email or national id."""
    data = request.get_json(silent=True) or {}
    identifier = (data.get('username') or data.get('email') or data.get('national_id') or '').strip()
    password = data.get('password', '')
    ip = request.remote_addr

    if not identifier or not password:
        return jsonify({"error": "Username and password are required"}), 400

    if not re.match(r'^[\w.@+-]{3,}$', identifier):
        return jsonify({"error": "Invalid username format"}), 400

    user = User.query.filter(or_(
        User.username == identifier,
        User.email == identifier.lower(),
        User.national_id == identifier,
    )).first()

    if user and user.check_password(password):
        access_token, refresh_token = _issue_tokens(user)

        response = make_response(jsonify({
            "message": "Login successful",
            "user": user.to_dict(),
            "access_token": access_token,
        }))
        _set_cookie(response, "access_token_cookie", access_token,
                    int(current_app.config["JWT_ACCESS_TOKEN_EXPIRES"].total_seconds()), "/")
        _set_cookie(response, "refresh_token_cookie", refresh_token,
                    int(current_app.config["JWT_REFRESH_TOKEN_EXPIRES"].total_seconds()), "/auth/refresh")

        log_event("LOGIN_SUCCESS", user_id=user.id, ip=ip, description=f"{user.username} logged in")
        return response

    log_event("LOGIN_FAILED", ip=ip, description=f"Failed login attempt for {identifier}", level="WARNING")
    return jsonify({"error": "Invalid username or password"}), 401


@auth_bp.route('/me', methods=['GET'])
@jwt_required()
def get_current_user():
    user = db.session.get(User, int(get_jwt_identity()))
    if not user:
        return jsonify({"error": "User not found"}), 404
    return jsonify(user.to_dict()), 200


@auth_bp.route('/refresh', methods=['POST'])
@jwt_required(refresh=True)
def refresh_access_token():
    user = db.session.get(User, int(get_jwt_identity()))
    if not user:
        return jsonify({"error": "User not found"}), 404

    access_token, _ = _issue_tokens(user)
    response = make_response(jsonify({"message": "Token refreshed", "access_token": access_token}))
    _set_cookie(response, "access_token_cookie", access_token,
                int(current_app.config["JWT_ACCESS_TOKEN_EXPIRES"].total_seconds()), "/")

    log_event("REFRESH_TOKEN", user_id=user.id, ip=request.remote_addr)
    return response


@auth_bp.route("/logout", methods=["POST"])
@jwt_required()
def logout():
    claims = get_jwt()
    user_id = int(get_jwt_identity())
    expires = datetime.fromtimestamp(claims["exp"], tz=timezone.utc).replace(tzinfo=None)

    db.session.add(TokenBlocklist(jti=claims["jti"], token_type=claims.get("type", "access"),
                                  user_id=user_id, expires_at=expires))
    db.session.commit()

    response = make_response(jsonify({"message": "Successfully logged out"}))
    response.delete_cookie("access_token_cookie", path="/")
    response.delete_cookie("refresh_token_cookie", path="/auth/refresh")

    log_event("LOGOUT", user_id=user_id, ip=request.remote_addr)
    return response


@auth_bp.route('/student-login', methods=['POST'])
@limiter.limit("5 per minute", override_defaults=False)
def student_login():
    """Read-only portal access keyed by the student's national id."""
    data = request.get_json(silent=True) or {}
    national_id = str(data.get('national_id') or '').strip()
    ip = request.remote_addr

    if not national_id:
        return jsonify({"error": "National ID is required"}), 400

    if not re.match(current_app.config["NATIONAL_ID_PATTERN"], national_id):
        return jsonify({"error": "Invalid national ID format"}), 400

    student = find_student(national_id)
    if not student:
        log_event("STUDENT_LOGIN_FAILED", ip=ip, description="No student for submitted national id", level="WARNING")
        return jsonify({"error": "Invalid national ID"}), 401

    log_event("STUDENT_LOGIN", ip=ip, description=f"student {student.id}")
    return jsonify(student_bundle(student)), 200

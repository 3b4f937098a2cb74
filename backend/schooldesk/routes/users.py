from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from schooldesk.models import User, Role, SchoolClass, TeacherClass
from schooldesk.extensions import db
from schooldesk.seed import create_staff_user, seed_accounts
from utils.decorators import role_required
from utils.audit import log_event

users_bp = Blueprint('users', __name__)


@users_bp.route('/create', methods=['POST'])
@jwt_required()
@role_required('admin')
def create_user(actor):
    data = request.get_json(silent=True) or {}
    user = create_staff_user(
        email=data.get('email'),
        password=data.get('password'),
        full_name=data.get('full_name'),
        role=(data.get('role') or 'teacher').strip().lower(),
        username=data.get('username'),
        national_id=data.get('national_id'),
    )
    db.session.commit()

    log_event("USER_CREATED", user_id=actor.user_id, ip=request.remote_addr, description=user.email)
    return jsonify({"message": "User created", "user": user.to_dict()}), 201


@users_bp.route('/teachers', methods=['GET'])
@jwt_required()
@role_required('admin')
def list_teachers(actor):
    teachers = (User.query.join(Role)
                .filter(Role.name == 'teacher')
                .order_by(User.full_name).all())
    return jsonify([t.to_dict() for t in teachers]), 200


@users_bp.route('/change-password', methods=['POST'])
@jwt_required()
@role_required('admin')
def change_password(actor):
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''

    if not email or not password:
        return jsonify({"error": "Email and password are required"}), 400
    if len(password) < 8:
        return jsonify({"error": "Password must be at least 8 characters"}), 400

    user = User.query.filter_by(email=email).first()
    if not user:
        return jsonify({"error": "User not found"}), 404

    user.set_password(password)
    db.session.commit()

    log_event("PASSWORD_CHANGED", user_id=actor.user_id, ip=request.remote_addr, description=email)
    return jsonify({"message": "Password updated"}), 200


@users_bp.route('/<int:user_id>/classes', methods=['PUT'])
@jwt_required()
@role_required('admin')
def assign_classes(user_id, actor):
    """Replace a teacher's class assignments with ``[{class_id, subject}]``."""
    user = db.session.get(User, user_id)
    if not user:
        return jsonify({"error": "User not found"}), 404

    assignments = (request.get_json(silent=True) or {}).get('assignments', [])
    class_ids = {int(a.get('class_id')) for a in assignments if a.get('class_id')}
    known = {c.id for c in SchoolClass.query.filter(SchoolClass.id.in_(class_ids)).all()}
    missing = sorted(class_ids - known)
    if missing:
        return jsonify({"error": "Unknown classes", "details": missing}), 400

    TeacherClass.query.filter_by(teacher_id=user.id).delete()
    seen = set()
    for a in assignments:
        class_id = int(a['class_id'])
        if class_id in seen:
            continue
        seen.add(class_id)
        db.session.add(TeacherClass(teacher_id=user.id, class_id=class_id, subject=a.get('subject')))
    db.session.commit()
    db.session.refresh(user)

    return jsonify(user.to_dict()), 200


@users_bp.route('/seed', methods=['POST'])
@jwt_required()
@role_required('admin')
def seed(actor):
    created = seed_accounts()
    return jsonify({"message": "Seed complete", "created": created}), 200

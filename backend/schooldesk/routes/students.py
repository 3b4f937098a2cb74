import re
from flask import Blueprint, current_app, request, jsonify
from flask_jwt_extended import jwt_required
from sqlalchemy.exc import IntegrityError
from schooldesk.models import Student, SchoolClass
from schooldesk.extensions import db
from schooldesk.services.importer import read_sheet, normalize_rows, insert_students
from utils.decorators import role_required, class_access_required
from utils.pagination import apply_search, paginate
from utils.access_control import get_allowed_class_ids
from utils.audit import log_event

students_bp = Blueprint("students", __name__)

STUDENT_FIELDS = ('full_name', 'academic_number', 'national_id', 'parent_phone', 'class_id')


def _clean_payload(data):
    values = {}
    for field in STUDENT_FIELDS:
        if field not in data:
            continue
        value = data.get(field)
        if isinstance(value, str):
            value = value.strip() or None
        values[field] = value
    if values.get('national_id') is not None:
        values['national_id'] = str(values['national_id'])
    if values.get('class_id') is not None:
        values['class_id'] = int(values['class_id'])
        if not db.session.get(SchoolClass, values['class_id']):
            raise LookupError("Class not found")
    return values


def _national_id_ok(values):
    national_id = values.get('national_id')
    return national_id is None or re.match(current_app.config["NATIONAL_ID_PATTERN"], national_id) is not None


@students_bp.route('', methods=['GET'])
@jwt_required()
@role_required('admin', 'teacher')
def list_students(actor):
    page = request.args.get("page", 1, type=int)
    per_page = request.args.get("per_page", 50, type=int)
    search_term = request.args.get("search", type=str)
    class_id = request.args.get("class_id", type=int)

    try:
        allowed = get_allowed_class_ids(actor, class_id)
    except PermissionError as e:
        return jsonify({"error": str(e)}), 403

    query = Student.query
    if class_id or not actor.is_admin:
        query = query.filter(Student.class_id.in_(allowed))

    query = apply_search(query, Student, search_term, ["full_name", "academic_number", "national_id"])
    body = paginate(query.order_by(Student.full_name), page, per_page,
                    serialize=lambda s: s.to_dict(include_class=True))
    body["students"] = body.pop("items")
    return jsonify(body), 200


@students_bp.route('/<int:student_id>', methods=['GET'])
@jwt_required()
@role_required('admin', 'teacher')
def get_student(student_id, actor):
    student = db.session.get(Student, student_id)
    if not student:
        return jsonify({"error": "Student not found"}), 404

    denied = class_access_required(student.class_id, actor)
    if denied:
        return denied

    return jsonify(student.to_dict(include_class=True)), 200


@students_bp.route('', methods=['POST'])
@jwt_required()
@role_required('admin')
def create_student(actor):
    data = request.get_json(silent=True) or {}
    try:
        values = _clean_payload(data)
    except LookupError as e:
        return jsonify({"error": str(e)}), 404
    except (TypeError, ValueError):
        return jsonify({"error": "Invalid class_id"}), 400

    if not values.get('full_name'):
        return jsonify({"error": "Full name is required"}), 400
    if not _national_id_ok(values):
        return jsonify({"error": "Invalid national ID format"}), 400

    student = Student(**values)
    db.session.add(student)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": "A student with this national ID already exists"}), 400

    return jsonify(student.to_dict(include_class=True)), 201


@students_bp.route('/<int:student_id>', methods=['PUT'])
@jwt_required()
@role_required('admin')
def update_student(student_id, actor):
    student = db.session.get(Student, student_id)
    if not student:
        return jsonify({"error": "Student not found"}), 404

    data = request.get_json(silent=True) or {}
    try:
        values = _clean_payload(data)
    except LookupError as e:
        return jsonify({"error": str(e)}), 404
    except (TypeError, ValueError):
        return jsonify({"error": "Invalid class_id"}), 400

    if 'full_name' in values and not values['full_name']:
        return jsonify({"error": "Full name is required"}), 400
    if not _national_id_ok(values):
        return jsonify({"error": "Invalid national ID format"}), 400

    for field, value in values.items():
        setattr(student, field, value)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": "A student with this national ID already exists"}), 400

    return jsonify(student.to_dict(include_class=True)), 200


@students_bp.route('/<int:student_id>', methods=['DELETE'])
@jwt_required()
@role_required('admin')
def delete_student(student_id, actor):
    student = db.session.get(Student, student_id)
    if not student:
        return jsonify({"error": "Student not found"}), 404

    db.session.delete(student)
    db.session.commit()
    log_event("STUDENT_DELETED", user_id=actor.user_id, ip=request.remote_addr, description=f"student {student_id}")
    return jsonify({"message": "Student deleted", "id": student_id}), 200


def _parse_upload():
    file = request.files.get('file')
    if not file:
        return None, None, (jsonify({"error": "No file uploaded"}), 400)

    class_id = request.form.get('class_id', type=int)
    if class_id and not db.session.get(SchoolClass, class_id):
        return None, None, (jsonify({"error": "Class not found"}), 404)

    rows = normalize_rows(read_sheet(file), default_class_id=class_id)
    return rows, class_id, None


@students_bp.route('/import/preview', methods=['POST'])
@jwt_required()
@role_required('admin')
def import_preview(actor):
    rows, _, error = _parse_upload()
    if error:
        return error

    return jsonify({
        "rows": [r.to_dict() for r in rows],
        "valid_count": sum(1 for r in rows if r.valid),
        "invalid_count": sum(1 for r in rows if not r.valid),
    }), 200


@students_bp.route('/import', methods=['POST'])
@jwt_required()
@role_required('admin')
def import_students(actor):
    rows, _, error = _parse_upload()
    if error:
        return error

    result = insert_students(rows)
    skipped = [r.to_dict() for r in rows if not r.valid]

    log_event("STUDENT_IMPORT", user_id=actor.user_id, ip=request.remote_addr,
              description=f"{result.success_count} inserted, {result.failure_count} failed, {len(skipped)} skipped")

    body = result.to_dict()
    body["skipped"] = skipped
    return jsonify(body), 200

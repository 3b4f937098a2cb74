from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from schooldesk.models import SchoolClass, Student, AttendanceRecord, BehaviorRecord
from schooldesk.extensions import db
from utils.decorators import role_required
from utils.access_control import get_allowed_class_ids

classes_bp = Blueprint('classes', __name__)

CLASS_FIELDS = ('name', 'grade', 'section', 'academic_year')


@classes_bp.route('', methods=['GET'])
@jwt_required()
@role_required('admin', 'teacher')
def list_classes(actor):
    allowed = get_allowed_class_ids(actor)
    classes = SchoolClass.query.filter(SchoolClass.id.in_(allowed)).order_by(SchoolClass.name).all()
    return jsonify([c.to_dict(include_counts=True) for c in classes]), 200


@classes_bp.route('', methods=['POST'])
@jwt_required()
@role_required('admin')
def create_class(actor):
    data = request.get_json(silent=True) or {}
    name = (data.get('name') or '').strip()
    if not name:
        return jsonify({"error": "Class name is required"}), 400

    school_class = SchoolClass(name=name, **{f: data.get(f) for f in CLASS_FIELDS if f != 'name'})
    db.session.add(school_class)
    db.session.commit()
    return jsonify(school_class.to_dict()), 201


@classes_bp.route('/<int:class_id>', methods=['PUT'])
@jwt_required()
@role_required('admin')
def update_class(class_id, actor):
    school_class = db.session.get(SchoolClass, class_id)
    if not school_class:
        return jsonify({"error": "Class not found"}), 404

    data = request.get_json(silent=True) or {}
    if 'name' in data and not (data.get('name') or '').strip():
        return jsonify({"error": "Class name is required"}), 400

    for field in CLASS_FIELDS:
        if field in data:
            value = data.get(field)
            setattr(school_class, field, value.strip() if isinstance(value, str) else value)
    db.session.commit()
    return jsonify(school_class.to_dict()), 200


@classes_bp.route('/<int:class_id>', methods=['DELETE'])
@jwt_required()
@role_required('admin')
def delete_class(class_id, actor):
    school_class = db.session.get(SchoolClass, class_id)
    if not school_class:
        return jsonify({"error": "Class not found"}), 404

    # Students and their day records outlive the class
    for model in (Student, AttendanceRecord, BehaviorRecord):
        model.query.filter_by(class_id=class_id).update({"class_id": None})
    db.session.delete(school_class)
    db.session.commit()
    return jsonify({"message": "Class deleted", "id": class_id}), 200

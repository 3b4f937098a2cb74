from io import BytesIO
from flask import Blueprint, request, jsonify, send_file
from flask_jwt_extended import jwt_required
from schooldesk.models import CategoryTemplate, GradeCategory, GradeRecord, SchoolClass, Student
from schooldesk.extensions import db
from schooldesk.errors import ValidationError
from schooldesk.services import grading
from schooldesk.services.reports import class_grade_sheet, grades_report
from schooldesk.services.exports import NOOR_COLUMNS, NOOR_SHEET, XLSX_MIMETYPE, noor_filename, noor_rows, to_excel
from utils.decorators import role_required, class_access_required
from utils.access_control import get_allowed_class_ids

grades_bp = Blueprint('grades', __name__)


def _number(data, key, default=None, minimum=0):
    if key not in data or data.get(key) in (None, ""):
        return default
    try:
        value = float(data.get(key))
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be a number")
    if value < minimum:
        raise ValidationError(f"{key} must be at least {minimum}")
    return value


@grades_bp.route('/categories', methods=['GET'])
@jwt_required()
@role_required('admin', 'teacher')
def list_categories(actor):
    class_id = request.args.get('class_id', type=int)
    if not class_id:
        return jsonify({"error": "class_id is required"}), 400

    denied = class_access_required(class_id, actor)
    if denied:
        return denied

    categories = (GradeCategory.query.filter_by(class_id=class_id)
                  .order_by(GradeCategory.sort_order, GradeCategory.name).all())
    return jsonify({
        "categories": [c.to_dict() for c in categories],
        "weights": grading.weight_total(categories),
    }), 200


@grades_bp.route('/categories', methods=['POST'])
@jwt_required()
@role_required('admin')
def create_category(actor):
    """Create a category for one class, or for every class when ``apply_to_all`` is set."""
    data = request.get_json(silent=True) or {}
    name = (data.get('name') or '').strip()
    if not name:
        return jsonify({"error": "Category name is required"}), 400

    weight = _number(data, 'weight', 0)
    max_score = _number(data, 'max_score', 100)
    sort_order = int(data.get('sort_order') or 0)

    if data.get('apply_to_all'):
        classes = SchoolClass.query.all()
        template = CategoryTemplate(name=name)
        db.session.add(template)
        db.session.flush()
    else:
        school_class = db.session.get(SchoolClass, data.get('class_id') or 0)
        if not school_class:
            return jsonify({"error": "Class not found"}), 404
        classes = [school_class]
        template = None
        if data.get('template_id'):
            template = db.session.get(CategoryTemplate, data.get('template_id'))
            if not template:
                return jsonify({"error": "Template not found"}), 404

    created = []
    for school_class in classes:
        category = GradeCategory(name=name, weight=weight, max_score=max_score, sort_order=sort_order,
                                 class_id=school_class.id, template_id=template.id if template else None)
        db.session.add(category)
        created.append(category)
    db.session.commit()

    return jsonify([c.to_dict() for c in created]), 201


@grades_bp.route('/categories/<int:category_id>', methods=['PUT'])
@jwt_required()
@role_required('admin')
def update_category(category_id, actor):
    category = db.session.get(GradeCategory, category_id)
    if not category:
        return jsonify({"error": "Category not found"}), 404

    data = request.get_json(silent=True) or {}
    weight = _number(data, 'weight')
    max_score = _number(data, 'max_score')

    if 'name' in data:
        name = (data.get('name') or '').strip()
        if not name:
            return jsonify({"error": "Category name is required"}), 400
        category.name = name
    if 'sort_order' in data:
        category.sort_order = int(data.get('sort_order') or 0)

    if data.get('apply_to_all'):
        updated = grading.propagate_template(category, weight=weight, max_score=max_score)
    else:
        if weight is not None:
            category.weight = weight
        if max_score is not None:
            category.max_score = max_score
        updated = [category]

    db.session.commit()
    return jsonify([c.to_dict() for c in updated]), 200


@grades_bp.route('/categories/<int:category_id>', methods=['DELETE'])
@jwt_required()
@role_required('admin')
def delete_category(category_id, actor):
    category = db.session.get(GradeCategory, category_id)
    if not category:
        return jsonify({"error": "Category not found"}), 404

    db.session.delete(category)
    db.session.commit()
    return jsonify({"message": "Category deleted", "id": category_id}), 200


@grades_bp.route('/class/<int:class_id>', methods=['GET'])
@jwt_required()
@role_required('admin', 'teacher')
def class_sheet(class_id, actor):
    school_class = db.session.get(SchoolClass, class_id)
    if not school_class:
        return jsonify({"error": "Class not found"}), 404

    denied = class_access_required(class_id, actor)
    if denied:
        return denied

    sheet = class_grade_sheet(school_class)
    sheet["weights"] = grading.weight_total(school_class.categories)
    return jsonify(sheet), 200


def _resolve_entries(data):
    """
    Yield (student_id, category_id, raw_value, is_level) from either
    ``{category_id, scores|levels: {student_id: value}}`` or
    ``{student_id, scores: {category_id: value}}``.
    """
    if data.get('category_id'):
        category_id = int(data['category_id'])
        if 'levels' in data:
            for student_id, level in (data.get('levels') or {}).items():
                yield int(student_id), category_id, level, True
        for student_id, value in (data.get('scores') or {}).items():
            yield int(student_id), category_id, value, False
    elif data.get('student_id'):
        student_id = int(data['student_id'])
        for category_id, value in (data.get('scores') or {}).items():
            yield student_id, int(category_id), value, False
    else:
        raise ValidationError("Either category_id or student_id is required")


@grades_bp.route('/scores', methods=['POST'])
@jwt_required()
@role_required('admin', 'teacher')
def save_scores(actor):
    data = request.get_json(silent=True) or {}
    try:
        entries = list(_resolve_entries(data))
    except (TypeError, ValueError):
        return jsonify({"error": "Student and category ids must be integers"}), 400
    if not entries:
        return jsonify({"error": "No scores submitted"}), 400

    categories = {c.id: c for c in GradeCategory.query.filter(
        GradeCategory.id.in_(list({e[1] for e in entries}))).all()}
    students = {s.id: s for s in Student.query.filter(
        Student.id.in_(list({e[0] for e in entries}))).all()}

    # Validate everything before the first write
    values = []
    for student_id, category_id, raw, is_level in entries:
        category = categories.get(category_id)
        student = students.get(student_id)
        if not category:
            return jsonify({"error": f"Category {category_id} not found"}), 404
        if not student:
            return jsonify({"error": f"Student {student_id} not found"}), 404
        if student.class_id != category.class_id:
            return jsonify({"error": f"Student {student_id} is not in the category's class"}), 400
        denied = class_access_required(category.class_id, actor)
        if denied:
            return denied
        score = (grading.level_to_score(raw, category.max_score) if is_level
                 else grading.clamp_score(raw, category.max_score))
        values.append((student_id, category_id, score))

    existing = {
        (g.student_id, g.category_id): g
        for g in GradeRecord.query.filter(
            GradeRecord.student_id.in_(list(students)), GradeRecord.category_id.in_(list(categories))).all()
    }

    saved = []
    for student_id, category_id, score in values:
        record = existing.get((student_id, category_id))
        if record:
            record.score = score
            record.recorded_by = actor.user_id
        else:
            record = GradeRecord(student_id=student_id, category_id=category_id,
                                 score=score, recorded_by=actor.user_id)
            db.session.add(record)
            existing[(student_id, category_id)] = record
        saved.append(record)
    db.session.commit()

    return jsonify({"records": [r.to_dict() for r in saved]}), 200


@grades_bp.route('/summary', methods=['GET'])
@jwt_required()
@role_required('admin', 'teacher')
def summary(actor):
    class_id = request.args.get('class_id', type=int)
    try:
        allowed = get_allowed_class_ids(actor, class_id)
    except PermissionError as e:
        return jsonify({"error": str(e)}), 403
    return jsonify(grades_report(allowed)), 200


@grades_bp.route('/export/noor', methods=['GET'])
@jwt_required()
@role_required('admin', 'teacher')
def export_noor(actor):
    """Excel sheet in the ministry "Noor" upload layout for one category."""
    category = db.session.get(GradeCategory, request.args.get('category_id', type=int) or 0)
    if not category:
        return jsonify({"error": "Category not found"}), 404

    denied = class_access_required(category.class_id, actor)
    if denied:
        return denied

    students = Student.query.filter_by(class_id=category.class_id).order_by(Student.full_name).all()
    grades = {g.student_id: g for g in GradeRecord.query.filter_by(category_id=category.id).all()}

    content = to_excel(noor_rows(students, grades), NOOR_COLUMNS, sheet_name=NOOR_SHEET, widths=(15, 30, 10))
    return send_file(BytesIO(content), mimetype=XLSX_MIMETYPE, as_attachment=True,
                     download_name=noor_filename(category.school_class.name, category.name))

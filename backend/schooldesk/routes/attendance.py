from collections import Counter
from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from schooldesk.models import AttendanceRecord, AttendanceStatus, SchoolClass, Student
from schooldesk.extensions import db
from schooldesk.services.reconcile import save_attendance
from utils.decorators import role_required, class_access_required
from utils.serialization import parse_date, entries_from_payload

attendance_bp = Blueprint('attendance', __name__)


@attendance_bp.route('', methods=['GET'])
@jwt_required()
@role_required('admin', 'teacher')
def day_sheet(actor):
    """Roster for one class and day. Students without a record have ``status: null``."""
    class_id = request.args.get('class_id', type=int)
    try:
        day = parse_date(request.args.get('date'))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    school_class = db.session.get(SchoolClass, class_id or 0)
    if not school_class:
        return jsonify({"error": "Class not found"}), 404
    denied = class_access_required(class_id, actor)
    if denied:
        return denied

    students = Student.query.filter_by(class_id=class_id).order_by(Student.full_name).all()
    records = {
        r.student_id: r for r in AttendanceRecord.query.filter(
            AttendanceRecord.student_id.in_([s.id for s in students]),
            AttendanceRecord.date == day).all()
    } if students else {}

    counts = Counter(r.status.value for r in records.values())
    rows = []
    for s in students:
        record = records.get(s.id)
        rows.append({
            "student_id": s.id,
            "full_name": s.full_name,
            "record_id": record.id if record else None,
            "status": record.status.value if record else None,
            "notes": record.notes if record else None,
        })

    return jsonify({
        "class": school_class.to_dict(),
        "date": day.isoformat(),
        "students": rows,
        "counts": {status.value: counts.get(status.value, 0) for status in AttendanceStatus},
        "unrecorded": len(students) - len(records),
    }), 200


@attendance_bp.route('', methods=['POST'])
@jwt_required()
@role_required('admin', 'teacher')
def save(actor):
    data = request.get_json(silent=True) or {}
    class_id = data.get('class_id')
    try:
        day = parse_date(data.get('date'))
        entries = entries_from_payload(data)
    except (KeyError, TypeError, ValueError) as e:
        return jsonify({"error": str(e) or "Invalid attendance payload"}), 400

    if not entries:
        return jsonify({"error": "No attendance entries submitted"}), 400

    school_class = db.session.get(SchoolClass, class_id or 0)
    if not school_class:
        return jsonify({"error": "Class not found"}), 404
    denied = class_access_required(school_class.id, actor)
    if denied:
        return denied

    roster = [s.id for s in Student.query.with_entities(Student.id).filter_by(class_id=school_class.id)]
    result = save_attendance(roster, entries, day, school_class.id, actor.user_id)
    return jsonify(result.to_dict()), 200


@attendance_bp.route('/student/<int:student_id>', methods=['GET'])
@jwt_required()
@role_required('admin', 'teacher')
def student_history(student_id, actor):
    student = db.session.get(Student, student_id)
    if not student:
        return jsonify({"error": "Student not found"}), 404
    denied = class_access_required(student.class_id, actor)
    if denied:
        return denied

    query = AttendanceRecord.query.filter_by(student_id=student_id)
    try:
        if request.args.get('from'):
            query = query.filter(AttendanceRecord.date >= parse_date(request.args['from'], 'from'))
        if request.args.get('to'):
            query = query.filter(AttendanceRecord.date <= parse_date(request.args['to'], 'to'))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    records = query.order_by(AttendanceRecord.date.desc()).all()
    return jsonify({
        "student": student.to_dict(),
        "records": [r.to_dict() for r in records],
        "counts": dict(Counter(r.status.value for r in records)),
    }), 200


@attendance_bp.route('/<int:record_id>', methods=['DELETE'])
@jwt_required()
@role_required('admin', 'teacher')
def delete_record(record_id, actor):
    record = db.session.get(AttendanceRecord, record_id)
    if not record:
        return jsonify({"error": "Attendance record not found"}), 404
    denied = class_access_required(record.class_id, actor)
    if denied:
        return denied

    db.session.delete(record)
    db.session.commit()
    return jsonify({"message": "Attendance record deleted", "id": record_id}), 200

from datetime import date
from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from schooldesk.models import AttendanceRecord, BehaviorRecord, NotificationRecord, SchoolClass, Student
from schooldesk.services import reports
from utils.decorators import role_required
from utils.access_control import get_allowed_class_ids
from utils.serialization import parse_date

dashboard_bp = Blueprint('dashboard', __name__)


def _scope(actor):
    class_id = request.args.get('class_id', type=int)
    return get_allowed_class_ids(actor, class_id)


@dashboard_bp.route('/summary', methods=['GET'])
@jwt_required()
@role_required('admin', 'teacher')
def summary(actor):
    try:
        class_ids = _scope(actor)
    except PermissionError as e:
        return jsonify({"error": str(e)}), 403

    today = date.today()
    students = Student.query.filter(Student.class_id.in_(class_ids))
    student_ids = [s.id for s in students.with_entities(Student.id)]
    today_attendance = AttendanceRecord.query.filter(
        AttendanceRecord.student_id.in_(student_ids), AttendanceRecord.date == today).all() if student_ids else []

    return jsonify({
        "totalStudents": len(student_ids),
        "totalClasses": SchoolClass.query.filter(SchoolClass.id.in_(class_ids)).count(),
        "presentToday": sum(1 for r in today_attendance if r.status.value == "present"),
        "absentToday": sum(1 for r in today_attendance if r.status.value == "absent"),
        "lateToday": sum(1 for r in today_attendance if r.status.value == "late"),
        "behaviorToday": BehaviorRecord.query.filter(
            BehaviorRecord.student_id.in_(student_ids), BehaviorRecord.date == today,
            BehaviorRecord.type.isnot(None)).count() if student_ids else 0,
        "unreadNotifications": NotificationRecord.query.filter(
            NotificationRecord.student_id.in_(student_ids),
            NotificationRecord.is_read.is_(False)).count() if student_ids else 0,
    }), 200


@dashboard_bp.route('/periods', methods=['GET'])
@jwt_required()
@role_required('admin', 'teacher')
def periods(actor):
    """This week/month against the previous one."""
    try:
        class_ids = _scope(actor)
        today = parse_date(request.args['date']) if request.args.get('date') else date.today()
    except PermissionError as e:
        return jsonify({"error": str(e)}), 403
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    comparison = reports.period_comparison(today, class_ids)
    for span in comparison.values():
        span["trend"] = {
            key: reports.trend(span["current"][key], span["previous"][key])
            for key in ("present", "absent", "late", "behaviorNegative")
        }
        span["trend"]["rate"] = span["current"]["rate"] - span["previous"]["rate"]
    return jsonify(comparison), 200


@dashboard_bp.route('/class-grades', methods=['GET'])
@jwt_required()
@role_required('admin', 'teacher')
def class_grades(actor):
    kind = request.args.get('kind')
    if kind not in (None, "exam", "daily"):
        return jsonify({"error": "kind must be 'exam' or 'daily'"}), 400
    try:
        class_ids = _scope(actor)
    except PermissionError as e:
        return jsonify({"error": str(e)}), 403
    return jsonify(reports.class_grades_comparison(class_ids, kind)), 200


@dashboard_bp.route('/performance', methods=['GET'])
@jwt_required()
@role_required('admin', 'teacher')
def performance(actor):
    try:
        class_ids = _scope(actor)
    except PermissionError as e:
        return jsonify({"error": str(e)}), 403
    return jsonify(reports.class_performance(class_ids)), 200

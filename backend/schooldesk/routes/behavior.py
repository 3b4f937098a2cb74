from collections import Counter
from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from schooldesk.models import BehaviorRecord, BehaviorType, NotificationType, SchoolClass, Student
from schooldesk.extensions import db
from schooldesk.services.reconcile import save_behavior
from schooldesk.services import sms
from utils.decorators import role_required, class_access_required
from utils.serialization import parse_date, entries_from_payload
from utils.audit import log_event

behavior_bp = Blueprint('behavior', __name__)

FAILURE_STATUS = {
    sms.NO_PHONE: 400,
    sms.GATEWAY_REJECTED: 422,
    sms.GATEWAY_ERROR: 502,
}


@behavior_bp.route('', methods=['GET'])
@jwt_required()
@role_required('admin', 'teacher')
def day_sheet(actor):
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
        r.student_id: r for r in BehaviorRecord.query.filter(
            BehaviorRecord.student_id.in_([s.id for s in students]),
            BehaviorRecord.date == day).all()
    } if students else {}

    rows = []
    for s in students:
        record = records.get(s.id)
        rows.append({
            "student_id": s.id,
            "full_name": s.full_name,
            "has_phone": bool(s.parent_phone),
            "record_id": record.id if record else None,
            "type": record.type.value if record and record.type else None,
            "note": record.note if record else None,
            "notified": record.notified if record else False,
        })

    counts = Counter(r.type.value for r in records.values() if r.type)
    return jsonify({
        "class": school_class.to_dict(),
        "date": day.isoformat(),
        "students": rows,
        "counts": {t.value: counts.get(t.value, 0) for t in BehaviorType},
    }), 200


@behavior_bp.route('', methods=['POST'])
@jwt_required()
@role_required('admin', 'teacher')
def save(actor):
    data = request.get_json(silent=True) or {}
    class_id = data.get('class_id')
    try:
        day = parse_date(data.get('date'))
        entries = entries_from_payload(data)
    except (KeyError, TypeError, ValueError) as e:
        return jsonify({"error": str(e) or "Invalid behavior payload"}), 400

    if not entries:
        return jsonify({"error": "No behavior entries submitted"}), 400

    school_class = db.session.get(SchoolClass, class_id or 0)
    if not school_class:
        return jsonify({"error": "Class not found"}), 404
    denied = class_access_required(school_class.id, actor)
    if denied:
        return denied

    roster = [s.id for s in Student.query.with_entities(Student.id).filter_by(class_id=school_class.id)]
    result = save_behavior(roster, entries, day, school_class.id, actor.user_id)
    return jsonify(result.to_dict()), 200


@behavior_bp.route('/<int:record_id>/notify', methods=['POST'])
@jwt_required()
@role_required('admin', 'teacher')
def notify_guardian(record_id, actor):
    record = db.session.get(BehaviorRecord, record_id)
    if not record:
        return jsonify({"error": "Behavior record not found"}), 404
    denied = class_access_required(record.class_id, actor)
    if denied:
        return denied
    if record.type is None:
        return jsonify({"error": "No behavior type recorded for this day"}), 400

    def mark_notified(student):
        record.notified = True

    results = sms.dispatch(
        [record.student],
        lambda student: sms.behavior_message(student, record),
        NotificationType.behavior,
        created_by=actor.user_id,
        on_sent=mark_notified,
    )
    result = results[0]

    log_event("SMS_BEHAVIOR", user_id=actor.user_id, ip=request.remote_addr,
              description=f"record {record_id}: {result.status}")

    body = result.to_dict()
    body["record"] = record.to_dict()
    if result.ok:
        return jsonify(body), 200
    body["error"] = result.detail or result.status
    return jsonify(body), FAILURE_STATUS.get(result.status, 502)

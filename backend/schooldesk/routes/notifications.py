from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from schooldesk.models import NotificationRecord, NotificationType, Student
from schooldesk.extensions import db
from schooldesk.services import sms
from utils.decorators import role_required, class_access_required
from utils.access_control import get_allowed_class_ids
from utils.audit import log_event

notifications_bp = Blueprint('notifications', __name__)

RECENT_LIMIT = 100


@notifications_bp.route('', methods=['GET'])
@jwt_required()
@role_required('admin', 'teacher')
def list_notifications(actor):
    query = NotificationRecord.query.join(Student, NotificationRecord.student_id == Student.id)
    if not actor.is_admin:
        query = query.filter(Student.class_id.in_(get_allowed_class_ids(actor)))
    if request.args.get('unread') in ('1', 'true'):
        query = query.filter(NotificationRecord.is_read.is_(False))

    notifications = query.order_by(NotificationRecord.created_at.desc()).limit(RECENT_LIMIT).all()
    return jsonify([n.to_dict() for n in notifications]), 200


@notifications_bp.route('/<int:notification_id>/read', methods=['POST'])
@jwt_required()
@role_required('admin', 'teacher')
def mark_read(notification_id, actor):
    notification = db.session.get(NotificationRecord, notification_id)
    if not notification:
        return jsonify({"error": "Notification not found"}), 404
    denied = class_access_required(notification.student.class_id, actor)
    if denied:
        return denied

    notification.is_read = True
    db.session.commit()
    return jsonify(notification.to_dict()), 200


@notifications_bp.route('/templates', methods=['GET'])
@jwt_required()
@role_required('admin', 'teacher')
def templates(actor):
    return jsonify({t.value: text for t, text in sms.TEMPLATES.items()}), 200


@notifications_bp.route('/send', methods=['POST'])
@jwt_required()
@role_required('admin', 'teacher')
def send(actor):
    """
    Fan out one SMS per student. Body:
      {"student_ids": [...], "type": "absence", "message": optional template with {name}}
    """
    data = request.get_json(silent=True) or {}
    try:
        notification_type = NotificationType(data.get('type') or 'summon')
    except ValueError:
        return jsonify({"error": "Invalid notification type"}), 400
    if notification_type == NotificationType.behavior:
        return jsonify({"error": "Behavior notices are sent from the behavior sheet"}), 400

    try:
        student_ids = [int(i) for i in data.get('student_ids') or []]
    except (TypeError, ValueError):
        return jsonify({"error": "student_ids must be integers"}), 400
    if not student_ids:
        return jsonify({"error": "No recipients selected"}), 400

    template = (data.get('message') or '').strip() or sms.TEMPLATES[notification_type]
    try:
        template.format(name='')
    except (KeyError, IndexError, ValueError):
        return jsonify({"error": "Message template may only use the {name} placeholder"}), 400

    found = {s.id: s for s in Student.query.filter(Student.id.in_(student_ids)).all()}
    missing = [i for i in student_ids if i not in found]
    if missing:
        return jsonify({"error": "Students not found", "details": missing}), 404
    for student in found.values():
        denied = class_access_required(student.class_id, actor)
        if denied:
            return denied

    results = sms.dispatch(
        [found[i] for i in student_ids],
        lambda student: sms.render_message(template, student),
        notification_type,
        created_by=actor.user_id,
    )

    summary = sms.summarize(results)
    log_event("SMS_DISPATCH", user_id=actor.user_id, ip=request.remote_addr,
              description=f"{notification_type.value}: {summary['success_count']} sent, "
                          f"{summary['failure_count']} failed")
    return jsonify(summary), 200

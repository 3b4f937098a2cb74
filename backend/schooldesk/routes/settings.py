from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required
from schooldesk.models import SiteSetting
from schooldesk.extensions import db
from schooldesk.services import sms
from schooldesk.services.storage import LETTERHEAD_KEY, save_letterhead, serve_file
from utils.decorators import role_required
from utils.audit import log_event

settings_bp = Blueprint('settings', __name__)

BRANDING_KEYS = ("school_name", "school_subtitle", LETTERHEAD_KEY)
SMS_KEYS = ("sms_provider", "sms_username", "sms_api_key", "sms_sender_id")
EDITABLE_KEYS = ("school_name", "school_subtitle") + SMS_KEYS
MASK = "********"


def _mask(value):
    if not value:
        return None
    return MASK + value[-4:] if len(value) > 4 else MASK


@settings_bp.route('/branding', methods=['GET'])
def branding():
    return jsonify({key: SiteSetting.get_value(key) for key in BRANDING_KEYS}), 200


@settings_bp.route('', methods=['GET'])
@jwt_required()
@role_required('admin')
def get_settings(actor):
    return jsonify(_settings_payload()), 200


def _settings_payload():
    values = {key: SiteSetting.get_value(key) for key in BRANDING_KEYS + SMS_KEYS}
    values["sms_api_key"] = _mask(values["sms_api_key"])
    values["sms_provider"] = values["sms_provider"] or current_app.config.get("SMS_PROVIDER")
    values["sms_providers"] = sorted(sms.PROVIDER_URLS)
    return values


@settings_bp.route('', methods=['PUT'])
@jwt_required()
@role_required('admin')
def update_settings(actor):
    data = request.get_json(silent=True) or {}
    unknown = sorted(set(data) - set(EDITABLE_KEYS))
    if unknown:
        return jsonify({"error": "Unknown settings", "details": unknown}), 400

    provider = data.get("sms_provider")
    if provider and provider not in sms.PROVIDER_URLS:
        return jsonify({"error": f"Unknown SMS provider: {provider}"}), 400

    for key, value in data.items():
        # The masked key echoed back by the client means "unchanged"
        if key == "sms_api_key" and isinstance(value, str) and value.startswith(MASK):
            continue
        SiteSetting.set_value(key, value.strip() if isinstance(value, str) else value)
    db.session.commit()

    log_event("SETTINGS_UPDATED", user_id=actor.user_id, ip=request.remote_addr,
              description=", ".join(sorted(data)))
    return jsonify(_settings_payload()), 200


@settings_bp.route('/letterhead', methods=['POST'])
@jwt_required()
@role_required('admin')
def upload_letterhead(actor):
    url = save_letterhead(request.files.get('file'))
    db.session.commit()
    return jsonify({"url": url}), 200


@settings_bp.route('/files/<bucket>/<path:filename>', methods=['GET'])
def files(bucket, filename):
    return serve_file(bucket, filename)


@settings_bp.route('/sms/test', methods=['POST'])
@jwt_required()
@role_required('admin')
def test_sms(actor):
    data = request.get_json(silent=True) or {}
    phone = sms.normalize_phone(data.get('phone'), current_app.config["SMS_COUNTRY_CODE"],
                                current_app.config["SMS_TRUNK_PREFIX"])
    if not phone:
        return jsonify({"error": "phone is required"}), 400

    message = (data.get('message') or '').strip() or "رسالة تجريبية من نظام المدرسة"
    result = sms.send_sms(phone, message)
    return jsonify({"success": True, "phone": phone, "result": result}), 200

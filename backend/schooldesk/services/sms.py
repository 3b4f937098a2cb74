"""
Guardian notifications over an SMS HTTP gateway.

Each recipient is sent to independently; the returned log always holds one
entry per requested recipient, whatever happened to the others.
"""
import re
import logging
from dataclasses import dataclass, asdict
from typing import Optional

import requests
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from schooldesk.extensions import db
from schooldesk.errors import GatewayError, GatewayRejected
from schooldesk.models import NotificationRecord, NotificationType, SiteSetting

logger = logging.getLogger(__name__)

SENT = "sent"
NO_PHONE = "no_phone"
GATEWAY_ERROR = "gateway_error"
GATEWAY_REJECTED = "gateway_rejected"
# Delivered, but the notification log could not be written
SENT_UNRECORDED = "sent_unrecorded"

SIGNATURE = "مع تحيات إدارة المدرسة"

TEMPLATES = {
    NotificationType.absence: "السلام عليكم ولي أمر الطالب/ة: {name}\nنفيدكم بغياب الطالب/ة اليوم عن المدرسة.\n\n" + SIGNATURE,
    NotificationType.grades: "السلام عليكم ولي أمر الطالب/ة: {name}\nتم رصد درجات جديدة، يمكنكم الاطلاع عليها عبر بوابة الطالب.\n\n" + SIGNATURE,
    NotificationType.summon: "السلام عليكم ولي أمر الطالب/ة: {name}\nنأمل حضوركم إلى المدرسة لمراجعة شؤون الطالب/ة.\n\n" + SIGNATURE,
    NotificationType.behavior: "السلام عليكم ولي أمر الطالب/ة: {name}\nسلوك اليوم: {label}{note}\n\n" + SIGNATURE,
}

BEHAVIOR_LABELS = {
    "positive": "إيجابي",
    "neutral": "محايد",
    "negative": "سلبي",
}

PROVIDER_URLS = {
    "msegat": "https://www.msegat.com/gw/sendsms.php",
    "unifonic": "https://el.cloud.unifonic.com/rest/SMS/messages",
    "taqnyat": "https://api.taqnyat.sa/v1/messages",
}


@dataclass
class GatewayCredentials:
    provider: str
    username: Optional[str]
    api_key: Optional[str]
    sender_id: Optional[str]


@dataclass
class DeliveryResult:
    student_id: int
    full_name: str
    phone: Optional[str]
    status: str
    detail: Optional[str] = None
    notification_id: Optional[int] = None

    @property
    def ok(self):
        return self.status in (SENT, SENT_UNRECORDED)

    def to_dict(self):
        return asdict(self)


def normalize_phone(raw, country_code="966", trunk_prefix="0"):
    """
    Turn a locally typed number into international form without the plus,
    e.g. ``0512345678`` -> ``966512345678``.
    """
    if raw is None:
        return None
    phone = re.sub(r"[\s\-\+]", "", str(raw))
    if not phone:
        return None
    if trunk_prefix and phone.startswith(trunk_prefix):
        phone = country_code + phone[len(trunk_prefix):]
    elif not phone.startswith(country_code):
        phone = country_code + phone
    return phone


def render_message(template, student, **extra):
    return template.format(name=student.full_name, **extra)


def behavior_message(student, record):
    note = f"\nملاحظة: {record.note}" if record.note else ""
    label = BEHAVIOR_LABELS.get(record.type.value, record.type.value)
    return render_message(TEMPLATES[NotificationType.behavior], student, label=label, note=note)


def load_credentials():
    config = current_app.config
    return GatewayCredentials(
        provider=SiteSetting.get_value("sms_provider", config.get("SMS_PROVIDER", "msegat")),
        username=SiteSetting.get_value("sms_username", config.get("SMS_USERNAME")),
        api_key=SiteSetting.get_value("sms_api_key", config.get("SMS_API_KEY")),
        sender_id=SiteSetting.get_value("sms_sender_id", config.get("SMS_SENDER_ID")),
    )


def _build_request(credentials, phone, message):
    provider = credentials.provider
    if provider == "msegat":
        return {"json": {
            "userName": credentials.username,
            "apiKey": credentials.api_key,
            "numbers": phone,
            "userSender": credentials.sender_id,
            "msg": message,
            "msgEncoding": "UTF8",
        }}
    if provider == "unifonic":
        return {"data": {
            "AppSid": credentials.api_key,
            "SenderID": credentials.sender_id,
            "Recipient": phone,
            "Body": message,
        }}
    if provider == "taqnyat":
        return {
            "json": {"recipients": [phone], "body": message, "sender": credentials.sender_id},
            "headers": {"Authorization": f"Bearer {credentials.api_key}"},
        }
    raise GatewayError(f"Unknown SMS provider: {provider}")


def _accepted(provider, response, payload):
    if provider == "msegat":
        return str(payload.get("code")) == "1"
    if provider == "unifonic":
        return payload.get("success") in (True, "true")
    if provider == "taqnyat":
        return response.status_code == 201 or payload.get("statusCode") == 201
    return False


def send_sms(phone, message, credentials=None, timeout=None):
    """
    POST one message to the configured provider.

    Retries once on connection errors or timeouts. Raises GatewayError for
    transport/HTTP failures and GatewayRejected when the provider refuses.
    """
    credentials = credentials or load_credentials()
    if not credentials.api_key or not credentials.sender_id:
        raise GatewayError("SMS gateway credentials are not configured")

    timeout = timeout or current_app.config.get("SMS_TIMEOUT", 10)
    url = PROVIDER_URLS.get(credentials.provider)
    request_kwargs = _build_request(credentials, phone, message)

    attempts = 2
    for attempt in range(1, attempts + 1):
        try:
            response = requests.post(url, timeout=timeout, **request_kwargs)
            break
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.warning("SMS gateway attempt %s/%s failed: %s", attempt, attempts, e)
            if attempt == attempts:
                raise GatewayError("SMS gateway unreachable", details=str(e))
        except requests.RequestException as e:
            raise GatewayError("SMS gateway request failed", details=str(e))

    try:
        payload = response.json()
    except ValueError:
        payload = {}

    if not _accepted(credentials.provider, response, payload):
        if response.status_code >= 400 and response.status_code != 201:
            raise GatewayError(payload.get("message") or f"SMS gateway returned HTTP {response.status_code}",
                               details=payload or response.text)
        raise GatewayRejected(payload.get("message") or "فشل إرسال الرسالة", details=payload)

    return payload


def dispatch(students, message_for, notification_type, created_by=None, on_sent=None):
    """
    Send one message per student and persist a NotificationRecord for each
    success.

    Args:
      students: Student rows to notify.
      message_for: callable(student) -> message text.
      notification_type: NotificationType stored on the record.
      created_by: staff user id.
      on_sent: optional callable(student) run after a successful send,
               before the commit.
    """
    config = current_app.config
    country_code = config.get("SMS_COUNTRY_CODE", "966")
    trunk_prefix = config.get("SMS_TRUNK_PREFIX", "0")
    credentials = load_credentials()

    results = []
    for student in students:
        phone = normalize_phone(student.parent_phone, country_code, trunk_prefix)
        if not phone:
            results.append(DeliveryResult(student.id, student.full_name, None, NO_PHONE))
            continue

        message = message_for(student)
        try:
            send_sms(phone, message, credentials)
        except GatewayRejected as e:
            results.append(DeliveryResult(student.id, student.full_name, phone, GATEWAY_REJECTED, e.message))
            continue
        except GatewayError as e:
            results.append(DeliveryResult(student.id, student.full_name, phone, GATEWAY_ERROR, e.message))
            continue

        try:
            record = NotificationRecord(student_id=student.id, type=notification_type,
                                        message=message, created_by=created_by)
            db.session.add(record)
            if on_sent:
                on_sent(student)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("SMS to student %s was sent but could not be recorded: %s", student.id, e)
            results.append(DeliveryResult(student.id, student.full_name, phone, SENT_UNRECORDED, str(e)))
            continue
        results.append(DeliveryResult(student.id, student.full_name, phone, SENT, notification_id=record.id))

    return results


def summarize(results):
    sent = sum(1 for r in results if r.ok)
    return {
        "success_count": sent,
        "failure_count": len(results) - sent,
        "results": [r.to_dict() for r in results],
    }

from datetime import datetime
from schooldesk.extensions import db
import enum

class TimestampMixin:
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

class RoleEnum(enum.Enum):
    admin = "admin"
    teacher = "teacher"

class AttendanceStatus(enum.Enum):
    present = "present"
    absent = "absent"
    late = "late"
    early_leave = "early_leave"
    sick_leave = "sick_leave"

class BehaviorType(enum.Enum):
    positive = "positive"
    neutral = "neutral"
    negative = "negative"

class NotificationType(enum.Enum):
    grades = "grades"
    absence = "absence"
    summon = "summon"
    behavior = "behavior"

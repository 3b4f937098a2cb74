from .User import User, Role, TokenBlocklist, TeacherClass
from .SchoolClass import SchoolClass
from .Student import Student
from .Grade import CategoryTemplate, GradeCategory, GradeRecord
from .AttendanceRecord import AttendanceRecord
from .BehaviorRecord import BehaviorRecord
from .Notification import NotificationRecord
from .SiteSetting import SiteSetting
from .AuditLog import AuditLog
from .base import AttendanceStatus, BehaviorType, NotificationType, RoleEnum

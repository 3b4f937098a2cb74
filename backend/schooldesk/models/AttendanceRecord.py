from schooldesk.extensions import db
from .base import AttendanceStatus, TimestampMixin

class AttendanceRecord(db.Model, TimestampMixin):
    __tablename__ = 'attendance_records'

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('students.id'), nullable=False, index=True)
    class_id = db.Column(db.Integer, db.ForeignKey('classes.id'), nullable=True, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    status = db.Column(db.Enum(AttendanceStatus), nullable=False, default=AttendanceStatus.present)
    recorded_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    notes = db.Column(db.String(255), nullable=True)

    student = db.relationship('Student', back_populates='attendance_records')

    __table_args__ = (
        db.UniqueConstraint('student_id', 'date', name='uq_attendance_student_date'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "student_id": self.student_id,
            "class_id": self.class_id,
            "date": self.date.isoformat(),
            "status": self.status.value,
            "notes": self.notes,
        }

from schooldesk.extensions import db
from .base import BehaviorType, TimestampMixin

class BehaviorRecord(db.Model, TimestampMixin):
    __tablename__ = 'behavior_records'

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('students.id'), nullable=False, index=True)
    class_id = db.Column(db.Integer, db.ForeignKey('classes.id'), nullable=True, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    type = db.Column(db.Enum(BehaviorType), nullable=True)
    note = db.Column(db.Text, nullable=True)
    notified = db.Column(db.Boolean, nullable=False, default=False)
    recorded_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)

    student = db.relationship('Student', back_populates='behavior_records')

    __table_args__ = (
        db.UniqueConstraint('student_id', 'date', name='uq_behavior_student_date'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "student_id": self.student_id,
            "class_id": self.class_id,
            "date": self.date.isoformat(),
            "type": self.type.value if self.type else None,
            "note": self.note,
            "notified": self.notified,
        }

from datetime import datetime
from schooldesk.extensions import db

class Student(db.Model):
    __tablename__ = 'students'

    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(150), nullable=False, index=True)
    academic_number = db.Column(db.String(30), nullable=True, index=True)
    national_id = db.Column(db.String(20), unique=True, nullable=True)
    parent_phone = db.Column(db.String(30), nullable=True)
    class_id = db.Column(db.Integer, db.ForeignKey('classes.id'), nullable=True, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    school_class = db.relationship('SchoolClass', back_populates='students')
    grades = db.relationship('GradeRecord', back_populates='student', lazy=True, cascade="all, delete-orphan")
    attendance_records = db.relationship('AttendanceRecord', back_populates='student', lazy=True,
                                         cascade="all, delete-orphan")
    behavior_records = db.relationship('BehaviorRecord', back_populates='student', lazy=True,
                                       cascade="all, delete-orphan")
    notifications = db.relationship('NotificationRecord', back_populates='student', lazy=True,
                                    cascade="all, delete-orphan")

    def to_dict(self, include_class=False):
        data = {
            "id": self.id,
            "full_name": self.full_name,
            "academic_number": self.academic_number,
            "national_id": self.national_id,
            "parent_phone": self.parent_phone,
            "class_id": self.class_id,
        }
        if include_class:
            data["class"] = self.school_class.to_dict() if self.school_class else None
        return data

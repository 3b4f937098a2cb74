from datetime import datetime
from schooldesk.extensions import db

class SchoolClass(db.Model):
    __tablename__ = 'classes'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    grade = db.Column(db.String(50), nullable=True)
    section = db.Column(db.String(20), nullable=True)
    academic_year = db.Column(db.String(20), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    students = db.relationship('Student', back_populates='school_class', lazy=True)
    categories = db.relationship('GradeCategory', back_populates='school_class', lazy=True,
                                 cascade="all, delete-orphan",
                                 order_by='GradeCategory.sort_order')
    teacher_assignments = db.relationship('TeacherClass', back_populates='school_class',
                                          lazy=True, cascade="all, delete-orphan")

    def to_dict(self, include_counts=False):
        data = {
            "id": self.id,
            "name": self.name,
            "grade": self.grade,
            "section": self.section,
            "academic_year": self.academic_year,
        }
        if include_counts:
            data["student_count"] = len(self.students)
        return data

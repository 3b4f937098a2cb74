from datetime import datetime
from schooldesk.extensions import db
from .base import TimestampMixin

class CategoryTemplate(db.Model):
    """Shared identity of one logical category across every class."""
    __tablename__ = 'category_templates'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    categories = db.relationship('GradeCategory', back_populates='template', lazy=True)


class GradeCategory(db.Model):
    __tablename__ = 'grade_categories'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    weight = db.Column(db.Float, nullable=False, default=0)
    max_score = db.Column(db.Float, nullable=False, default=100)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    class_id = db.Column(db.Integer, db.ForeignKey('classes.id'), nullable=False, index=True)
    template_id = db.Column(db.Integer, db.ForeignKey('category_templates.id'), nullable=True, index=True)

    school_class = db.relationship('SchoolClass', back_populates='categories')
    template = db.relationship('CategoryTemplate', back_populates='categories')
    grades = db.relationship('GradeRecord', back_populates='category', lazy=True, cascade="all, delete-orphan")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "weight": self.weight,
            "max_score": self.max_score,
            "sort_order": self.sort_order,
            "class_id": self.class_id,
            "template_id": self.template_id,
        }


class GradeRecord(db.Model, TimestampMixin):
    __tablename__ = 'grades'

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('students.id'), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey('grade_categories.id'), nullable=False, index=True)
    score = db.Column(db.Float, nullable=True)
    recorded_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)

    student = db.relationship('Student', back_populates='grades')
    category = db.relationship('GradeCategory', back_populates='grades')

    __table_args__ = (
        db.UniqueConstraint('student_id', 'category_id', name='uq_student_category'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "student_id": self.student_id,
            "category_id": self.category_id,
            "score": self.score,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

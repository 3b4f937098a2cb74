from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime
from schooldesk.extensions import db

class Role(db.Model):
    __tablename__ = 'roles'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(80), nullable=False, unique=True)

    users = db.relationship('User', back_populates='role', lazy=True)

class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=True)
    full_name = db.Column(db.String(150), nullable=True)
    national_id = db.Column(db.String(20), unique=True, nullable=True)
    password_hash = db.Column(db.String(512), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    role_id = db.Column(db.Integer, db.ForeignKey('roles.id'), nullable=False)
    role = db.relationship('Role', back_populates='users')

    class_assignments = db.relationship('TeacherClass', back_populates='teacher',
                                        lazy=True, cascade="all, delete-orphan")
    audit_logs = db.relationship('AuditLog', backref='user', lazy=True)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    @property
    def role_name(self):
        return self.role.name.lower() if self.role else ""

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "full_name": self.full_name,
            "national_id": self.national_id,
            "role": self.role_name or None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "classes": [
                {"class_id": a.class_id, "subject": a.subject}
                for a in self.class_assignments
            ],
        }


class TeacherClass(db.Model):
    __tablename__ = 'teacher_classes'

    id = db.Column(db.Integer, primary_key=True)
    teacher_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    class_id = db.Column(db.Integer, db.ForeignKey('classes.id'), nullable=False)
    subject = db.Column(db.String(100), nullable=True)

    teacher = db.relationship('User', back_populates='class_assignments')
    school_class = db.relationship('SchoolClass', back_populates='teacher_assignments')

    __table_args__ = (
        db.UniqueConstraint('teacher_id', 'class_id', name='uq_teacher_class'),
    )


class TokenBlocklist(db.Model):
    __tablename__ = 'token_blocklist'

    id = db.Column(db.Integer, primary_key=True)
    jti = db.Column(db.String(36), nullable=False, index=True)
    token_type = db.Column(db.String(10), nullable=False, default="access")
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    expires_at = db.Column(db.DateTime, nullable=False)

    user = db.relationship("User", backref="revoked_tokens")

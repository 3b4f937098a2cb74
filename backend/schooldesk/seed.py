import os
from schooldesk.extensions import db
from schooldesk.errors import ValidationError
from schooldesk.models import Role, RoleEnum, SchoolClass, TeacherClass, User

DEFAULT_SUBJECT = "حاسب آلي"


def ensure_roles():
    roles = {}
    for role_enum in RoleEnum:
        role = Role.query.filter_by(name=role_enum.value).first()
        if not role:
            role = Role(name=role_enum.value)
            db.session.add(role)
        roles[role_enum.value] = role
    db.session.flush()
    return roles


def create_staff_user(email, password, full_name=None, role="teacher", username=None, national_id=None):
    """Create a staff account. Raises ValidationError on bad or duplicate input; the caller commits."""
    email = (email or "").strip().lower()
    if not email or not password:
        raise ValidationError("Email and password are required")
    if len(password) < 8:
        raise ValidationError("Password must be at least 8 characters")
    if role not in {r.value for r in RoleEnum}:
        raise ValidationError(f"Role '{role}' not found")

    username = (username or email.split("@", 1)[0]).strip()
    if User.query.filter((User.email == email) | (User.username == username)).first():
        raise ValidationError("A user with this email or username already exists")
    if national_id and User.query.filter_by(national_id=national_id).first():
        raise ValidationError("A user with this national ID already exists")

    roles = ensure_roles()
    user = User(username=username, email=email, full_name=full_name or email,
                national_id=national_id or None, role_id=roles[role].id)
    user.set_password(password)
    db.session.add(user)
    db.session.flush()
    return user


def seed_accounts():
    """Idempotently create the default admin and teacher, linking the teacher to every class."""
    ensure_roles()
    created = []

    admin = User.query.filter_by(email="admin@school.edu.sa").first()
    if not admin:
        admin = create_staff_user("admin@school.edu.sa", os.getenv("ADMIN_PASSWORD", "Admin@123456"),
                                  full_name="مدير النظام", role="admin", username="admin")
        created.append(admin.email)

    teacher = User.query.filter_by(email="teacher@school.edu.sa").first()
    if not teacher:
        teacher = create_staff_user("teacher@school.edu.sa", os.getenv("TEACHER_PASSWORD", "Teacher@123456"),
                                    full_name="أحمد المعلم", role="teacher", username="teacher")
        created.append(teacher.email)

    assigned = {a.class_id for a in teacher.class_assignments}
    for school_class in SchoolClass.query.all():
        if school_class.id not in assigned:
            db.session.add(TeacherClass(teacher_id=teacher.id, class_id=school_class.id, subject=DEFAULT_SUBJECT))

    db.session.commit()
    return created

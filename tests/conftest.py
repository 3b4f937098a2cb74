"""
Shared fixtures: an in-memory app per test, a small seeded school and
bearer-token headers for each staff role. No network calls are made; the
SMS gateway is replaced with a fake ``requests.post``.
"""
import pytest
from flask_jwt_extended import create_access_token

from schooldesk import create_app
from schooldesk.config import TestConfig
from schooldesk.extensions import db as _db
from schooldesk.models import GradeCategory, SchoolClass, Student, TeacherClass
from schooldesk.seed import create_staff_user


@pytest.fixture
def app(tmp_path, monkeypatch):
    class Config(TestConfig):
        UPLOAD_FOLDER = str(tmp_path / "uploads")

    # audit.log is written relative to the working directory
    monkeypatch.chdir(tmp_path)
    app = create_app(Config)
    with app.app_context():
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def school(db):
    """Two classes, three students in class A, one in class B, a teacher assigned to A."""
    admin = create_staff_user("admin@school.test", "Admin@12345", full_name="Admin", role="admin",
                              username="admin", national_id="1000000001")
    teacher = create_staff_user("teacher@school.test", "Teacher@12345", full_name="Teacher", role="teacher",
                                username="teacher")
    class_a = SchoolClass(name="1/A", grade="1", section="A")
    class_b = SchoolClass(name="1/B", grade="1", section="B")
    db.session.add_all([class_a, class_b])
    db.session.flush()

    db.session.add(TeacherClass(teacher_id=teacher.id, class_id=class_a.id, subject="Math"))
    students = [
        Student(full_name="Sara Ali", national_id="1111111111", parent_phone="0512345678", class_id=class_a.id),
        Student(full_name="Omar Saleh", national_id="2222222222", parent_phone=None, class_id=class_a.id),
        Student(full_name="Lina Fahad", national_id="3333333333", parent_phone="966598765432", class_id=class_a.id),
        Student(full_name="Yousef Nasser", national_id="4444444444", parent_phone="0555555555", class_id=class_b.id),
    ]
    db.session.add_all(students)
    db.session.commit()

    return {
        "admin": admin,
        "teacher": teacher,
        "class_a": class_a,
        "class_b": class_b,
        "students": students,
    }


@pytest.fixture
def categories(db, school):
    """Two weighted categories in class A (40/60) and one in class B."""
    quiz = GradeCategory(name="Quiz", weight=40, max_score=100, sort_order=1, class_id=school["class_a"].id)
    exam = GradeCategory(name="Final exam", weight=60, max_score=20, sort_order=2, class_id=school["class_a"].id)
    other = GradeCategory(name="Quiz", weight=40, max_score=100, sort_order=1, class_id=school["class_b"].id)
    db.session.add_all([quiz, exam, other])
    db.session.commit()
    return {"quiz": quiz, "exam": exam, "other": other}


def _headers(user):
    token = create_access_token(identity=str(user.id))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(school):
    return _headers(school["admin"])


@pytest.fixture
def teacher_headers(school):
    return _headers(school["teacher"])


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code
        self.text = str(payload)

    def json(self):
        return self._payload


@pytest.fixture
def sms_gateway(monkeypatch):
    """
    Replace requests.post. Tests may set ``gateway.responses`` to a list of
    ``gateway.Response`` objects or exceptions consumed in order; otherwise every
    call succeeds with Msegat's ``code: "1"``.
    """
    import schooldesk.services.sms as sms_module

    class Gateway:
        Response = FakeResponse

        def __init__(self):
            self.calls = []
            self.responses = []

        def post(self, url, timeout=None, **kwargs):
            self.calls.append({"url": url, "timeout": timeout, **kwargs})
            if self.responses:
                outcome = self.responses.pop(0)
                if isinstance(outcome, Exception):
                    raise outcome
                return outcome
            return FakeResponse({"code": "1", "message": "Success"})

    gateway = Gateway()
    monkeypatch.setattr(sms_module.requests, "post", gateway.post)
    return gateway

"""
Test: class management over HTTP.
"""
from datetime import date

from schooldesk.models import (
    AttendanceRecord, AttendanceStatus, BehaviorRecord, BehaviorType,
    GradeCategory, GradeRecord, SchoolClass, Student, TeacherClass,
)


class TestCreateAndUpdate:
    def test_create(self, client, school, admin_headers):
        res = client.post("/classes", json={"name": "2/A", "grade": "2", "section": "A",
                                            "academic_year": "2025"}, headers=admin_headers)

        assert res.status_code == 201
        body = res.get_json()
        assert (body["name"], body["grade"], body["academic_year"]) == ("2/A", "2", "2025")

    def test_create_requires_name(self, client, school, admin_headers):
        res = client.post("/classes", json={"name": "  ", "grade": "2"}, headers=admin_headers)
        assert res.status_code == 400
        assert SchoolClass.query.count() == 2

    def test_teacher_cannot_create(self, client, school, teacher_headers):
        res = client.post("/classes", json={"name": "2/A"}, headers=teacher_headers)
        assert res.status_code == 403

    def test_update(self, client, db, school, admin_headers):
        class_a = school["class_a"]

        res = client.put(f"/classes/{class_a.id}", json={"name": " 1/Alpha ", "section": "Alpha"},
                         headers=admin_headers)

        assert res.status_code == 200
        assert res.get_json()["name"] == "1/Alpha"
        assert db.session.get(SchoolClass, class_a.id).section == "Alpha"

    def test_update_rejects_blank_name(self, client, db, school, admin_headers):
        class_a = school["class_a"]

        res = client.put(f"/classes/{class_a.id}", json={"name": ""}, headers=admin_headers)

        assert res.status_code == 400
        assert db.session.get(SchoolClass, class_a.id).name == "1/A"

    def test_update_unknown_class(self, client, school, admin_headers):
        res = client.put("/classes/999", json={"name": "x"}, headers=admin_headers)
        assert res.status_code == 404

    def test_list_counts_students(self, client, school, teacher_headers):
        res = client.get("/classes", headers=teacher_headers)
        assert res.get_json() == [dict(school["class_a"].to_dict(), student_count=3)]


class TestDelete:
    def test_detaches_students_and_drops_categories(self, client, db, school, categories, admin_headers):
        class_a, class_b = school["class_a"], school["class_b"]
        sara = school["students"][0]
        day = date(2025, 3, 10)
        db.session.add_all([
            GradeRecord(student_id=sara.id, category_id=categories["quiz"].id, score=90),
            AttendanceRecord(student_id=sara.id, class_id=class_a.id, date=day, status=AttendanceStatus.absent),
            BehaviorRecord(student_id=sara.id, class_id=class_a.id, date=day, type=BehaviorType.positive),
        ])
        db.session.commit()
        class_a_id, quiz_id, exam_id = class_a.id, categories["quiz"].id, categories["exam"].id

        res = client.delete(f"/classes/{class_a_id}", headers=admin_headers)

        assert res.status_code == 200
        db.session.expire_all()
        assert db.session.get(SchoolClass, class_a_id) is None
        assert Student.query.filter_by(class_id=None).count() == 3
        assert db.session.get(Student, sara.id).full_name == "Sara Ali"
        assert AttendanceRecord.query.one().class_id is None
        assert BehaviorRecord.query.one().class_id is None
        assert db.session.get(GradeCategory, quiz_id) is None
        assert db.session.get(GradeCategory, exam_id) is None
        assert GradeRecord.query.count() == 0
        assert TeacherClass.query.count() == 0
        # The other class is untouched
        assert GradeCategory.query.filter_by(class_id=class_b.id).count() == 1
        assert Student.query.filter_by(class_id=class_b.id).count() == 1

    def test_unknown_class(self, client, school, admin_headers):
        assert client.delete("/classes/999", headers=admin_headers).status_code == 404

    def test_teacher_cannot_delete(self, client, school, teacher_headers):
        res = client.delete(f"/classes/{school['class_a'].id}", headers=teacher_headers)
        assert res.status_code == 403

"""
Test: attendance/behavior upsert reconciliation.
"""
from datetime import date
from types import SimpleNamespace

import pytest

from schooldesk.errors import ValidationError
from schooldesk.models import AttendanceRecord, AttendanceStatus, BehaviorRecord, BehaviorType
from schooldesk.services import reconcile

DAY = date(2025, 3, 10)


class TestPlanAttendance:
    def test_new_entries_are_inserted_including_present(self):
        plan = reconcile.plan_attendance([1, 2], {1: {"status": "present"}, 2: {"status": "absent"}}, {})
        assert [(w.student_id, w.action) for w in plan] == [(1, "insert"), (2, "insert")]
        assert plan[1].values["status"] is AttendanceStatus.absent

    def test_missing_status_defaults_to_present(self):
        plan = reconcile.plan_attendance([1], {1: {}}, {})
        assert plan[0].values == {"status": AttendanceStatus.present, "notes": None}

    def test_unchanged_record_produces_no_write(self):
        existing = {1: SimpleNamespace(status=AttendanceStatus.late, notes="bus")}
        plan = reconcile.plan_attendance([1], {1: {"status": "late", "notes": "bus"}}, existing)
        assert plan == []

    def test_changed_record_updates_only_diff(self):
        existing = {1: SimpleNamespace(status=AttendanceStatus.late, notes="bus")}
        plan = reconcile.plan_attendance([1], {1: {"status": "absent", "notes": "bus"}}, existing)
        assert len(plan) == 1
        assert plan[0].action == "update"
        assert plan[0].values == {"status": AttendanceStatus.absent}

    def test_record_filed_under_other_class_is_moved(self):
        existing = {1: SimpleNamespace(status=AttendanceStatus.late, notes=None, class_id=1)}
        plan = reconcile.plan_attendance([1], {1: {"status": "late"}}, existing, class_id=2)
        assert plan[0].action == "update"
        assert plan[0].values == {"class_id": 2}

    def test_invalid_status(self):
        with pytest.raises(ValidationError):
            reconcile.plan_attendance([1], {1: {"status": "holiday"}}, {})

    def test_student_outside_roster_rejected(self):
        with pytest.raises(ValidationError):
            reconcile.plan_attendance([1], {1: {"status": "present"}, 9: {"status": "absent"}}, {})


class TestPlanBehavior:
    def test_untyped_new_entry_is_skipped(self):
        plan = reconcile.plan_behavior([1, 2], {1: {"type": None}, 2: {"type": "positive"}}, {})
        assert [(w.student_id, w.action) for w in plan] == [(2, "insert")]

    def test_clearing_type_updates_existing(self):
        existing = {1: SimpleNamespace(type=BehaviorType.negative, note=None)}
        plan = reconcile.plan_behavior([1], {1: {"type": ""}}, existing)
        assert plan[0].action == "update"
        assert plan[0].values == {"type": None}


def _entries(students, status="present"):
    return {s.id: {"status": status} for s in students}


class TestSaveAttendance:
    def test_repeated_saves_keep_one_record_per_day(self, db, school):
        class_a = school["class_a"]
        roster = [s.id for s in school["students"][:3]]
        entries = _entries(school["students"][:3])

        first = reconcile.save_attendance(roster, entries, DAY, class_a.id, school["teacher"].id)
        second = reconcile.save_attendance(roster, entries, DAY, class_a.id, school["teacher"].id)
        third = reconcile.save_attendance(roster, entries, DAY, class_a.id, school["teacher"].id)

        assert first.success_count == 3
        assert second.success_count == 0 and second.failure_count == 0
        assert third.success_count == 0
        assert AttendanceRecord.query.filter_by(date=DAY).count() == 3

    def test_failed_write_does_not_undo_others(self, db, school):
        class_a = school["class_a"]
        first, second = school["students"][:2]
        db.session.add(AttendanceRecord(student_id=second.id, class_id=class_a.id, date=DAY,
                                        status=AttendanceStatus.present))
        db.session.commit()

        # The second insert collides with the stored row on (student, date)
        plan = reconcile.plan_attendance([first.id, second.id], _entries([first, second], "absent"), {})
        result = reconcile.apply_plan(plan, AttendanceRecord, DAY, class_a.id, None)

        assert result.success_count == 1
        assert result.failure_count == 1
        assert result.failures[0]["student_id"] == second.id
        assert AttendanceRecord.query.filter_by(student_id=first.id, date=DAY).one().status is AttendanceStatus.absent

    def test_existing_record_found_across_classes(self, db, school):
        student = school["students"][0]
        db.session.add(AttendanceRecord(student_id=student.id, class_id=school["class_b"].id, date=DAY,
                                        status=AttendanceStatus.late))
        db.session.commit()

        result = reconcile.save_attendance([student.id], {student.id: {"status": "absent"}}, DAY,
                                           school["class_a"].id, None)

        assert result.success_count == 1
        records = AttendanceRecord.query.filter_by(student_id=student.id, date=DAY).all()
        assert len(records) == 1
        assert records[0].status is AttendanceStatus.absent

    def test_resave_under_new_class_moves_record(self, db, school):
        sara = school["students"][0]
        class_a, class_b = school["class_a"], school["class_b"]
        db.session.add(AttendanceRecord(student_id=sara.id, class_id=class_a.id, date=DAY,
                                        status=AttendanceStatus.absent))
        sara.class_id = class_b.id
        db.session.commit()

        result = reconcile.save_attendance([sara.id], {sara.id: {"status": "absent"}}, DAY, class_b.id, None)

        assert result.success_count == 1
        assert AttendanceRecord.query.filter_by(student_id=sara.id, date=DAY).one().class_id == class_b.id


class TestAttendanceApi:
    def test_save_and_read_day_sheet(self, client, school, teacher_headers):
        class_a = school["class_a"]
        sara, omar, lina = school["students"][:3]
        payload = {
            "class_id": class_a.id,
            "date": "2025-03-10",
            "records": [
                {"student_id": sara.id, "status": "present"},
                {"student_id": omar.id, "status": "absent", "notes": "sick"},
            ],
        }
        res = client.post("/attendance", json=payload, headers=teacher_headers)
        assert res.status_code == 200
        assert res.get_json()["success_count"] == 2

        res = client.post("/attendance", json=payload, headers=teacher_headers)
        assert res.get_json()["success_count"] == 0

        res = client.get(f"/attendance?class_id={class_a.id}&date=2025-03-10", headers=teacher_headers)
        body = res.get_json()
        assert body["counts"]["present"] == 1
        assert body["counts"]["absent"] == 1
        assert body["unrecorded"] == 1
        by_id = {row["student_id"]: row for row in body["students"]}
        assert by_id[lina.id]["status"] is None
        assert by_id[omar.id]["notes"] == "sick"

    def test_teacher_cannot_record_unassigned_class(self, client, school, teacher_headers):
        yousef = school["students"][3]
        res = client.post("/attendance", json={
            "class_id": school["class_b"].id,
            "date": "2025-03-10",
            "entries": {str(yousef.id): {"status": "present"}},
        }, headers=teacher_headers)
        assert res.status_code == 403

    def test_invalid_date(self, client, school, teacher_headers):
        res = client.post("/attendance", json={
            "class_id": school["class_a"].id, "date": "10/03/2025", "entries": {"1": {}},
        }, headers=teacher_headers)
        assert res.status_code == 400

    def test_student_from_other_class_rejected_before_write(self, client, school, admin_headers):
        sara, yousef = school["students"][0], school["students"][3]
        res = client.post("/attendance", json={
            "class_id": school["class_a"].id,
            "date": "2025-03-10",
            "entries": {str(sara.id): {"status": "present"}, str(yousef.id): {"status": "present"}},
        }, headers=admin_headers)
        assert res.status_code == 400
        assert AttendanceRecord.query.count() == 0


class TestBehaviorApi:
    def test_only_typed_entries_create_rows(self, client, school, teacher_headers):
        sara, omar, _ = school["students"][:3]
        res = client.post("/behavior", json={
            "class_id": school["class_a"].id,
            "date": "2025-03-10",
            "entries": {str(sara.id): {"type": "positive", "note": "helped"}, str(omar.id): {"type": None}},
        }, headers=teacher_headers)
        assert res.status_code == 200
        assert res.get_json()["success_count"] == 1
        assert BehaviorRecord.query.count() == 1

        res = client.get(f"/behavior?class_id={school['class_a'].id}&date=2025-03-10", headers=teacher_headers)
        assert res.get_json()["counts"]["positive"] == 1

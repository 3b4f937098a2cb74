"""
Test: report aggregation, period comparison and file exports.
"""
from datetime import date
from io import BytesIO

from openpyxl import load_workbook

from schooldesk.models import AttendanceRecord, AttendanceStatus, BehaviorRecord, BehaviorType, GradeRecord
from schooldesk.services import reports


class TestCalendar:
    def test_week_starts_sunday(self):
        # 2025-03-12 is a Wednesday
        assert reports.week_bounds(date(2025, 3, 12)) == (date(2025, 3, 9), date(2025, 3, 15))
        assert reports.week_bounds(date(2025, 3, 9)) == (date(2025, 3, 9), date(2025, 3, 15))

    def test_working_days_skip_friday_and_saturday(self):
        assert reports.working_days(date(2025, 3, 9), date(2025, 3, 15)) == 5

    def test_month_bounds(self):
        assert reports.month_bounds(date(2024, 2, 10)) == (date(2024, 2, 1), date(2024, 2, 29))

    def test_trend(self):
        assert reports.trend(15, 10) == 50
        assert reports.trend(5, 0) == 0


def test_exam_keywords():
    assert reports.is_exam_category("اختبار الفترة الأولى")
    assert reports.is_exam_category("Final Exam")
    assert not reports.is_exam_category("مشاركة")


def _attendance(db, school, day, statuses):
    for student, status in zip(school["students"], statuses):
        db.session.add(AttendanceRecord(student_id=student.id, class_id=student.class_id, date=day,
                                        status=AttendanceStatus(status)))
    db.session.commit()


class TestPeriodStats:
    def test_rate_uses_expected_school_days(self, db, school):
        # Sunday..Thursday of one week, every student present every day
        for offset in range(5):
            _attendance(db, school, date(2025, 3, 9 + offset), ["present"] * 4)

        stats = reports.period_stats(date(2025, 3, 9), date(2025, 3, 15))

        assert stats["present"] == 20
        assert stats["rate"] == 100

    def test_comparison_shape(self, db, school):
        _attendance(db, school, date(2025, 3, 10), ["present", "absent", "late", "present"])
        db.session.add(BehaviorRecord(student_id=school["students"][0].id, date=date(2025, 3, 10),
                                      type=BehaviorType.negative))
        db.session.commit()

        result = reports.period_comparison(date(2025, 3, 12))

        current = result["week"]["current"]
        assert (current["present"], current["absent"], current["late"]) == (2, 1, 1)
        assert current["behaviorNegative"] == 1
        assert result["week"]["previous"]["total"] == 0
        assert result["month"]["current"]["from"] == "2025-03-01"
        assert result["month"]["previous"]["to"] == "2025-02-28"


class TestAttendanceReport:
    def test_counts_and_rates(self, db, school):
        _attendance(db, school, date(2025, 3, 10), ["present", "absent", "late", "present"])
        _attendance(db, school, date(2025, 3, 11), ["present", "absent", "present", "present"])

        report = reports.attendance_report([school["class_a"].id], date(2025, 3, 1), date(2025, 3, 31))

        assert report["totals"]["absent"] == 2
        assert report["total"] == 6
        rows = {r["full_name"]: r for r in report["students"]}
        assert rows["Sara Ali"]["attendance_rate"] == 100.0
        assert rows["Omar Saleh"]["attendance_rate"] == 0.0
        assert rows["Lina Fahad"]["counts"]["late"] == 1

    def test_xlsx_export(self, client, db, school, admin_headers):
        _attendance(db, school, date(2025, 3, 10), ["absent"])

        res = client.get("/reports/attendance?format=xlsx", headers=admin_headers)

        assert res.status_code == 200
        rows = list(load_workbook(BytesIO(res.data)).active.iter_rows(values_only=True))
        assert rows[0] == ("اسم الطالب", "التاريخ", "الحالة", "ملاحظات")
        assert rows[1][:3] == ("Sara Ali", "2025-03-10", "غائب")

    def test_pdf_export(self, client, db, school, admin_headers):
        _attendance(db, school, date(2025, 3, 10), ["absent"])
        res = client.get("/reports/attendance?format=pdf&from=2025-03-01&to=2025-03-31", headers=admin_headers)
        assert res.status_code == 200
        assert res.mimetype == "application/pdf"
        assert res.data.startswith(b"%PDF")

    def test_bad_range(self, client, school, admin_headers):
        res = client.get("/reports/attendance?from=2025-03-10&to=2025-03-01", headers=admin_headers)
        assert res.status_code == 400

    def test_teacher_scope(self, client, school, teacher_headers):
        res = client.get(f"/reports/attendance?class_id={school['class_b'].id}", headers=teacher_headers)
        assert res.status_code == 403


class TestBehaviorReport:
    def test_filters_by_student(self, client, db, school, admin_headers):
        sara, omar = school["students"][:2]
        db.session.add_all([
            BehaviorRecord(student_id=sara.id, date=date(2025, 3, 10), type=BehaviorType.positive),
            BehaviorRecord(student_id=sara.id, date=date(2025, 3, 11), type=BehaviorType.negative),
            BehaviorRecord(student_id=omar.id, date=date(2025, 3, 10), type=BehaviorType.neutral),
            BehaviorRecord(student_id=omar.id, date=date(2025, 3, 11), type=None),
        ])
        db.session.commit()

        all_rows = client.get("/reports/behavior", headers=admin_headers).get_json()
        assert all_rows["total"] == 3

        res = client.get(f"/reports/behavior?student_id={sara.id}", headers=admin_headers)
        body = res.get_json()
        assert body["totals"] == {"positive": 1, "neutral": 0, "negative": 1}
        assert body["students"][0]["counts"]["negative"] == 1

    def test_xlsx_headers(self, client, db, school, admin_headers):
        db.session.add(BehaviorRecord(student_id=school["students"][0].id, date=date(2025, 3, 10),
                                      type=BehaviorType.positive, note="great"))
        db.session.commit()

        res = client.get("/reports/behavior?format=xlsx", headers=admin_headers)

        rows = list(load_workbook(BytesIO(res.data)).active.iter_rows(values_only=True))
        assert rows[0] == ("اسم الطالب", "التاريخ", "النوع", "ملاحظات")
        assert rows[1] == ("Sara Ali", "2025-03-10", "إيجابي", "great")


class TestGradeComparisons:
    def _scores(self, db, school, categories):
        sara, omar, lina = school["students"][:3]
        quiz, exam = categories["quiz"], categories["exam"]
        db.session.add_all([
            GradeRecord(student_id=sara.id, category_id=quiz.id, score=80),
            GradeRecord(student_id=sara.id, category_id=exam.id, score=18),
            GradeRecord(student_id=omar.id, category_id=quiz.id, score=60),
            GradeRecord(student_id=omar.id, category_id=exam.id, score=10),
        ])
        db.session.commit()

    def test_class_grades_split_by_kind(self, db, school, categories):
        self._scores(db, school, categories)
        class_ids = [school["class_a"].id, school["class_b"].id]

        exams = reports.class_grades_comparison(class_ids, kind="exam")
        daily = reports.class_grades_comparison(class_ids, kind="daily")

        assert exams["categories"] == ["Final exam"]
        assert daily["categories"] == ["Quiz"]
        by_class = {row["class_name"]: row for row in daily["classes"]}
        assert by_class["1/A"]["Quiz"] == 70.0
        assert by_class["1/B"]["Quiz"] is None

    def test_performance_diff_from_average(self, db, school, categories):
        self._scores(db, school, categories)

        result = reports.class_performance([school["class_a"].id])

        class_a = result[0]
        # Sara 86.0, Omar 54.0, Lina ungraded
        assert class_a["average"] == 70.0
        diffs = {r["full_name"]: r["diff"] for r in class_a["students"]}
        assert diffs == {"Sara Ali": 16.0, "Omar Saleh": -16.0}

    def test_grades_report_xlsx(self, client, db, school, categories, admin_headers):
        self._scores(db, school, categories)

        res = client.get(f"/reports/grades?format=xlsx&class_id={school['class_a'].id}", headers=admin_headers)

        rows = list(load_workbook(BytesIO(res.data)).active.iter_rows(values_only=True))
        assert rows[0] == ("الفصل", "اسم الطالب", "Quiz", "Final exam", "المجموع")
        totals = {r[1]: r[4] for r in rows[1:]}
        assert totals["Sara Ali"] == "86.0"
        assert totals["Lina Fahad"] == "—"


class TestDashboard:
    def test_summary(self, client, db, school, admin_headers):
        _attendance(db, school, date.today(), ["present", "absent"])
        body = client.get("/dashboard/summary", headers=admin_headers).get_json()
        assert body["totalStudents"] == 4
        assert body["totalClasses"] == 2
        assert body["presentToday"] == 1
        assert body["absentToday"] == 1

    def test_periods_endpoint(self, client, school, teacher_headers):
        res = client.get("/dashboard/periods?date=2025-03-12", headers=teacher_headers)
        body = res.get_json()
        assert set(body) == {"week", "month"}
        assert body["week"]["current"]["from"] == "2025-03-09"
        assert body["week"]["trend"]["present"] == 0

    def test_class_grades_kind_validation(self, client, school, admin_headers):
        assert client.get("/dashboard/class-grades?kind=weekly", headers=admin_headers).status_code == 400


class TestReportsFollowRecordedClass:
    def test_history_stays_with_the_class_it_was_taken_in(self, db, school):
        sara = school["students"][0]
        class_a, class_b = school["class_a"], school["class_b"]
        db.session.add(AttendanceRecord(student_id=sara.id, class_id=class_a.id, date=date(2025, 3, 10),
                                        status=AttendanceStatus.absent))
        db.session.add(BehaviorRecord(student_id=sara.id, class_id=class_a.id, date=date(2025, 3, 10),
                                      type=BehaviorType.negative))
        sara.class_id = class_b.id
        db.session.commit()

        assert reports.attendance_report([class_a.id])["total"] == 1
        assert reports.attendance_report([class_b.id])["total"] == 0
        assert reports.behavior_report([class_a.id])["totals"]["negative"] == 1
        assert reports.behavior_report([class_b.id])["total"] == 0

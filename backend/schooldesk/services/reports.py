"""
Read-side aggregations behind the reports and dashboard endpoints.
"""
import calendar
from collections import Counter, defaultdict
from datetime import timedelta

from schooldesk.models import (
    AttendanceRecord, AttendanceStatus, BehaviorRecord, BehaviorType,
    GradeCategory, GradeRecord, SchoolClass, Student,
)
from schooldesk.services.grading import build_summary, index_grades, weighted_percentage

# Friday and Saturday
WEEKEND = {4, 5}

EXAM_KEYWORDS = ("اختبار", "امتحان", "فترة", "نهائي", "test", "exam")

ATTENDANCE_LABELS = {
    "present": "حاضر",
    "absent": "غائب",
    "late": "متأخر",
    "early_leave": "خروج مبكر",
    "sick_leave": "إجازة مرضية",
}

BEHAVIOR_LABELS = {
    "positive": "إيجابي",
    "neutral": "محايد",
    "negative": "سلبي",
}


def _filtered(model, class_ids, start, end, student_id=None):
    query = model.query.join(Student, model.student_id == Student.id)
    if class_ids is not None:
        query = query.filter(model.class_id.in_(class_ids))
    if start:
        query = query.filter(model.date >= start)
    if end:
        query = query.filter(model.date <= end)
    if student_id:
        query = query.filter(model.student_id == student_id)
    return query.order_by(model.date.desc(), Student.full_name)


def attendance_report(class_ids, start=None, end=None, student_id=None):
    records = _filtered(AttendanceRecord, class_ids, start, end, student_id).all()

    totals = Counter(r.status.value for r in records)
    per_student = defaultdict(Counter)
    names = {}
    for r in records:
        per_student[r.student_id][r.status.value] += 1
        names[r.student_id] = r.student.full_name

    students = []
    for sid, counts in per_student.items():
        recorded = sum(counts.values())
        students.append({
            "student_id": sid,
            "full_name": names[sid],
            "counts": {s.value: counts.get(s.value, 0) for s in AttendanceStatus},
            "attendance_rate": round(counts.get("present", 0) / recorded * 100, 1) if recorded else None,
        })
    students.sort(key=lambda row: row["full_name"])

    return {
        "totals": {s.value: totals.get(s.value, 0) for s in AttendanceStatus},
        "total": len(records),
        "students": students,
        "records": [
            dict(r.to_dict(), full_name=r.student.full_name) for r in records
        ],
    }


def behavior_report(class_ids, start=None, end=None, student_id=None):
    records = [
        r for r in _filtered(BehaviorRecord, class_ids, start, end, student_id).all()
        if r.type is not None
    ]

    totals = Counter(r.type.value for r in records)
    per_student = defaultdict(Counter)
    names = {}
    for r in records:
        per_student[r.student_id][r.type.value] += 1
        names[r.student_id] = r.student.full_name

    return {
        "totals": {t.value: totals.get(t.value, 0) for t in BehaviorType},
        "total": len(records),
        "students": sorted(
            (
                {"student_id": sid, "full_name": names[sid],
                 "counts": {t.value: counts.get(t.value, 0) for t in BehaviorType}}
                for sid, counts in per_student.items()
            ),
            key=lambda row: row["full_name"],
        ),
        "records": [dict(r.to_dict(), full_name=r.student.full_name) for r in records],
    }


def class_grade_sheet(school_class):
    students = Student.query.filter_by(class_id=school_class.id).order_by(Student.full_name).all()
    categories = list(school_class.categories)
    grades = GradeRecord.query.filter(
        GradeRecord.category_id.in_([c.id for c in categories])
    ).all() if categories else []
    return {
        "class": school_class.to_dict(),
        "categories": [c.to_dict() for c in categories],
        "rows": build_summary(students, categories, grades),
    }


def grades_report(class_ids):
    classes = SchoolClass.query.filter(SchoolClass.id.in_(class_ids)).order_by(SchoolClass.name).all()
    return [class_grade_sheet(c) for c in classes]


def working_days(start, end):
    days = 0
    current = start
    while current <= end:
        if current.weekday() not in WEEKEND:
            days += 1
        current += timedelta(days=1)
    return days


def week_bounds(day):
    # Weeks run Sunday to Saturday
    start = day - timedelta(days=(day.weekday() + 1) % 7)
    return start, start + timedelta(days=6)


def month_bounds(day):
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


def period_stats(start, end, class_ids=None):
    student_query = Student.query
    if class_ids is not None:
        student_query = student_query.filter(Student.class_id.in_(class_ids))
    total_students = student_query.count()

    attendance = Counter(r.status.value for r in _filtered(AttendanceRecord, class_ids, start, end).all())
    behavior = Counter(r.type.value for r in _filtered(BehaviorRecord, class_ids, start, end).all() if r.type)

    expected = total_students * working_days(start, end)
    present = attendance.get("present", 0)
    return {
        "from": start.isoformat(),
        "to": end.isoformat(),
        "present": present,
        "absent": attendance.get("absent", 0),
        "late": attendance.get("late", 0),
        "total": sum(attendance.values()),
        "rate": round(present / expected * 100) if expected else 0,
        "behaviorPositive": behavior.get("positive", 0),
        "behaviorNegative": behavior.get("negative", 0),
    }


def trend(current, previous):
    """Percent change, 0 when there is nothing to compare against."""
    if not previous:
        return 0
    return round((current - previous) / previous * 100)


def period_comparison(today, class_ids=None):
    week_start, week_end = week_bounds(today)
    last_week_start, last_week_end = week_bounds(today - timedelta(days=7))
    month_start, month_end = month_bounds(today)
    last_month_start, last_month_end = month_bounds(month_start - timedelta(days=1))

    return {
        "week": {
            "current": period_stats(week_start, week_end, class_ids),
            "previous": period_stats(last_week_start, last_week_end, class_ids),
        },
        "month": {
            "current": period_stats(month_start, month_end, class_ids),
            "previous": period_stats(last_month_start, last_month_end, class_ids),
        },
    }


def is_exam_category(name):
    lowered = (name or "").lower()
    return any(keyword in lowered for keyword in EXAM_KEYWORDS)


def _category_label(category):
    return category.template.name if category.template else category.name


def class_grades_comparison(class_ids, kind=None):
    """
    Average raw score per category label for each class.

    ``kind`` narrows to ``"exam"`` or ``"daily"`` categories.
    """
    classes = SchoolClass.query.filter(SchoolClass.id.in_(class_ids)).order_by(SchoolClass.name).all()
    categories = GradeCategory.query.filter(GradeCategory.class_id.in_(class_ids)).all()
    if kind == "exam":
        categories = [c for c in categories if is_exam_category(c.name)]
    elif kind == "daily":
        categories = [c for c in categories if not is_exam_category(c.name)]

    labels = []
    for c in sorted(categories, key=lambda c: (c.sort_order, c.name)):
        label = _category_label(c)
        if label not in labels:
            labels.append(label)

    scores = defaultdict(list)
    grades = GradeRecord.query.filter(
        GradeRecord.category_id.in_([c.id for c in categories]),
        GradeRecord.score.isnot(None),
    ).all() if categories else []
    by_id = {c.id: c for c in categories}
    for g in grades:
        category = by_id[g.category_id]
        scores[(category.class_id, _category_label(category))].append(g.score)

    rows = []
    for cls in classes:
        entry = {"class_id": cls.id, "class_name": cls.name}
        for label in labels:
            values = scores.get((cls.id, label))
            entry[label] = round(sum(values) / len(values), 1) if values else None
        rows.append(entry)
    return {"categories": labels, "classes": rows}


def class_performance(class_ids):
    """Class averages of student percentages plus each student's distance from it."""
    classes = SchoolClass.query.filter(SchoolClass.id.in_(class_ids)).order_by(SchoolClass.name).all()
    output = []
    for cls in classes:
        students = Student.query.filter_by(class_id=cls.id).order_by(Student.full_name).all()
        if not students:
            continue
        categories = list(cls.categories)
        grades = GradeRecord.query.filter(
            GradeRecord.category_id.in_([c.id for c in categories])
        ).all() if categories else []
        index = index_grades(grades)

        rows = []
        for s in students:
            by_category = index.get(s.id, {})
            pct = weighted_percentage(
                (by_category[c.id].score if c.id in by_category else None, c) for c in categories
            )
            if pct is not None:
                rows.append({"student_id": s.id, "full_name": s.full_name, "score": pct})

        average = round(sum(r["score"] for r in rows) / len(rows), 1) if rows else None
        for r in rows:
            r["diff"] = round(r["score"] - average, 1)
        output.append({
            "class_id": cls.id,
            "class_name": cls.name,
            "student_count": len(students),
            "average": average,
            "students": sorted(rows, key=lambda r: r["score"], reverse=True),
        })
    return output

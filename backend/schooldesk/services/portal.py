"""
Read-only bundle shown to a student who signs in with a national id.
"""
from schooldesk.models import AttendanceRecord, BehaviorRecord, GradeRecord, Student
from schooldesk.services.grading import format_percentage, weighted_percentage

RECENT_BEHAVIOR = 20
RECENT_ATTENDANCE = 30


def find_student(national_id):
    return Student.query.filter_by(national_id=national_id).first()


def student_bundle(student):
    school_class = student.school_class
    grades = GradeRecord.query.filter_by(student_id=student.id).all()
    behaviors = (BehaviorRecord.query.filter_by(student_id=student.id)
                 .order_by(BehaviorRecord.date.desc())
                 .limit(RECENT_BEHAVIOR).all())
    attendance = (AttendanceRecord.query.filter_by(student_id=student.id)
                  .order_by(AttendanceRecord.date.desc())
                  .limit(RECENT_ATTENDANCE).all())

    # Only categories of the student's current class count towards the total
    current = [g for g in grades if school_class is None or g.category.class_id == school_class.id]
    percentage = weighted_percentage((g.score, g.category) for g in current)

    return {
        "student": {
            "id": student.id,
            "full_name": student.full_name,
            "national_id": student.national_id,
            "academic_number": student.academic_number,
            "class": {
                "name": school_class.name,
                "grade": school_class.grade,
                "section": school_class.section,
            } if school_class else None,
        },
        "grades": [
            {
                "score": g.score,
                "category": {
                    "name": g.category.name,
                    "max_score": g.category.max_score,
                    "weight": g.category.weight,
                },
            }
            for g in sorted(current, key=lambda g: (g.category.sort_order, g.category.name))
        ],
        "percentage": percentage,
        "percentage_display": format_percentage(percentage),
        "behaviors": [
            {"type": b.type.value if b.type else None, "note": b.note, "date": b.date.isoformat()}
            for b in behaviors
        ],
        "attendance": [
            {"status": a.status.value, "date": a.date.isoformat(), "notes": a.notes}
            for a in attendance
        ],
    }

"""
Weighted grade aggregation.

A student's percentage is the weight-normalised mean of the categories that
actually carry a score. Ungraded categories do not count against the student,
and a student with nothing graded has no percentage at all (``None``).
"""
import math

from schooldesk.extensions import db
from schooldesk.errors import ValidationError
from schooldesk.models import GradeCategory

UNGRADED = "—"

# Quick-entry levels used by the daily grade sheet.
LEVELS = ("excellent", "average", "zero")


def weighted_percentage(pairs):
    """
    Args:
      pairs: iterable of (score, category) where category exposes
             ``weight`` and ``max_score``. ``score`` may be None.

    Returns:
      float rounded to one decimal, or None when no weight was matched.
    """
    weighted_sum = 0.0
    total_weight = 0.0

    for score, category in pairs:
        if score is None or category is None:
            continue
        max_score = category.max_score or 0
        if max_score <= 0:
            continue
        weighted_sum += (float(score) / max_score) * category.weight
        total_weight += category.weight

    if total_weight <= 0:
        return None
    return round(weighted_sum / total_weight * 100, 1)


def format_percentage(value):
    return UNGRADED if value is None else f"{value:.1f}"


def clamp_score(value, max_score):
    """Coerce a raw score into [0, max_score]. Blank input clears the score."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid score: {value!r}")
    return max(0.0, min(number, float(max_score)))


def level_to_score(level, max_score):
    if level is None:
        return None
    if level not in LEVELS:
        raise ValidationError(f"Unknown level: {level}")
    if level == "excellent":
        return float(max_score)
    if level == "average":
        return float(math.floor(max_score / 2 + 0.5))
    return 0.0


def weight_total(categories):
    total = round(sum(c.weight or 0 for c in categories), 2)
    return {"total": total, "balanced": total == 100}


def index_grades(grades):
    """Group grade rows as ``{student_id: {category_id: grade}}``."""
    index = {}
    for grade in grades:
        index.setdefault(grade.student_id, {})[grade.category_id] = grade
    return index


def build_summary(students, categories, grades):
    index = index_grades(grades)
    rows = []
    for student in students:
        by_category = index.get(student.id, {})
        scores = {}
        pairs = []
        for category in categories:
            grade = by_category.get(category.id)
            score = grade.score if grade else None
            scores[category.id] = score
            pairs.append((score, category))
        percentage = weighted_percentage(pairs)
        rows.append({
            "student_id": student.id,
            "full_name": student.full_name,
            "scores": scores,
            "percentage": percentage,
            "display": format_percentage(percentage),
        })
    return rows


def propagate_template(category, weight=None, max_score=None):
    """
    Apply weight and/or max score to every per-class category that shares
    ``category``'s template. Categories of other templates are untouched.
    Returns the updated categories; the caller commits.
    """
    if category.template_id is None:
        raise ValidationError("Category is not linked to a template and cannot be applied to all classes")

    siblings = GradeCategory.query.filter_by(template_id=category.template_id).all()
    for sibling in siblings:
        if weight is not None:
            sibling.weight = weight
        if max_score is not None:
            sibling.max_score = max_score
    db.session.flush()
    return siblings

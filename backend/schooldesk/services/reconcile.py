"""
Per-day upsert reconciliation for attendance and behavior sheets.

A sheet submission is diffed against the records already stored for the
same students and date. Only real changes become writes, and every write
is committed on its own so one failure never undoes the others.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from schooldesk.extensions import db
from schooldesk.errors import ValidationError
from schooldesk.models import AttendanceRecord, AttendanceStatus, BehaviorRecord, BehaviorType

INSERT = "insert"
UPDATE = "update"


@dataclass
class PlannedWrite:
    student_id: int
    action: str
    values: Dict[str, Any]
    record: Optional[Any] = None


@dataclass
class BatchResult:
    success_count: int = 0
    failure_count: int = 0
    failures: List[dict] = field(default_factory=list)
    records: List[Any] = field(default_factory=list)

    def to_dict(self):
        return {
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "failures": self.failures,
            "records": [r.to_dict() for r in self.records],
        }


def _blank_to_none(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _as_enum(enum_cls, value, label):
    if value is None or value == "":
        return None
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Invalid {label}: {value}")


def _check_roster(roster_ids, entries):
    unknown = sorted(set(entries) - set(roster_ids))
    if unknown:
        raise ValidationError("Students are not in this class", details={"student_ids": unknown})


def plan_writes(entries, existing, fields, should_insert, class_id=None):
    """
    Diff submitted entries against existing records.

    Args:
      entries: {student_id: {field: value}}
      existing: {student_id: record} for the same date
      fields: field names compared between entry and record
      should_insert: predicate deciding whether a new entry is worth a row
      class_id: class the sheet is saved under; a record filed under another
                class is moved even when its values are unchanged
    """
    plan = []
    for student_id, values in entries.items():
        record = existing.get(student_id)
        if record is not None:
            changed = {f: values[f] for f in fields if getattr(record, f) != values[f]}
            if class_id is not None and record.class_id != class_id:
                changed["class_id"] = class_id
            if changed:
                plan.append(PlannedWrite(student_id, UPDATE, changed, record))
        elif should_insert(values):
            plan.append(PlannedWrite(student_id, INSERT, dict(values)))
    return plan


def plan_attendance(roster_ids, entries, existing, class_id=None):
    normalized = {}
    for student_id, entry in entries.items():
        status = _as_enum(AttendanceStatus, entry.get("status"), "attendance status") or AttendanceStatus.present
        normalized[int(student_id)] = {"status": status, "notes": _blank_to_none(entry.get("notes"))}
    _check_roster(roster_ids, normalized)
    # Every submitted row confirms the roll call, including "present".
    return plan_writes(normalized, existing, ("status", "notes"), lambda values: True, class_id)


def plan_behavior(roster_ids, entries, existing, class_id=None):
    normalized = {}
    for student_id, entry in entries.items():
        normalized[int(student_id)] = {
            "type": _as_enum(BehaviorType, entry.get("type"), "behavior type"),
            "note": _blank_to_none(entry.get("note")),
        }
    _check_roster(roster_ids, normalized)
    return plan_writes(normalized, existing, ("type", "note"), lambda values: values["type"] is not None, class_id)


def apply_plan(plan, model, date, class_id, recorded_by):
    """Commit every planned write independently and collect the outcome."""
    result = BatchResult()
    for write in plan:
        try:
            if write.action == INSERT:
                record = model(student_id=write.student_id, date=date, class_id=class_id,
                               recorded_by=recorded_by, **write.values)
                db.session.add(record)
            else:
                record = write.record
                for key, value in write.values.items():
                    setattr(record, key, value)
                record.class_id = class_id
                record.recorded_by = recorded_by
            db.session.commit()
            result.success_count += 1
            result.records.append(record)
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.warning("%s %s for student %s failed: %s",
                                       model.__tablename__, write.action, write.student_id, e)
            result.failure_count += 1
            result.failures.append({"student_id": write.student_id, "action": write.action, "error": str(e)})
    return result


def existing_for_date(model, student_ids, date):
    """Records keyed by student for the given day, regardless of class."""
    if not student_ids:
        return {}
    rows = model.query.filter(model.student_id.in_(student_ids), model.date == date).all()
    return {row.student_id: row for row in rows}


def save_attendance(roster_ids, entries, date, class_id, recorded_by):
    existing = existing_for_date(AttendanceRecord, [int(k) for k in entries], date)
    plan = plan_attendance(roster_ids, entries, existing, class_id)
    return apply_plan(plan, AttendanceRecord, date, class_id, recorded_by)


def save_behavior(roster_ids, entries, date, class_id, recorded_by):
    existing = existing_for_date(BehaviorRecord, [int(k) for k in entries], date)
    plan = plan_behavior(roster_ids, entries, existing, class_id)
    return apply_plan(plan, BehaviorRecord, date, class_id, recorded_by)

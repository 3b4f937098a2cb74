"""
Bulk student import from CSV/Excel sheets with Arabic or English headers.
"""
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pandas as pd
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from schooldesk.extensions import db
from schooldesk.errors import ValidationError
from schooldesk.models import SchoolClass, Student
from schooldesk.services.reconcile import BatchResult

SUPPORTED_EXTENSIONS = {"csv", "xls", "xlsx"}

# Ordered by priority: the first non-empty alias wins for each row.
FIELD_ALIASES = {
    "full_name": [
        "اسم الطالب", "الاسم", "الاسم الكامل", "اسم الطالب الرباعي",
        "full_name", "full name", "student name", "name",
    ],
    "academic_number": [
        "الرقم الأكاديمي", "الرقم الاكاديمي", "رقم الطالب",
        "academic_number", "academic number", "student number", "student id",
    ],
    "national_id": [
        "رقم الهوية", "الهوية", "السجل المدني", "رقم الإقامة",
        "national_id", "national id", "id number", "iqama",
    ],
    "parent_phone": [
        "جوال ولي الأمر", "رقم ولي الأمر", "رقم الجوال", "الجوال", "جوال",
        "parent_phone", "parent phone", "guardian phone", "phone", "mobile",
    ],
    "class_name": [
        "الفصل", "الصف", "class_name", "class name", "class",
    ],
}

MISSING_NAME = "missing full name"
INVALID_NATIONAL_ID = "invalid national id"


def _normalize_header(header):
    return re.sub(r"[\s_]+", " ", str(header)).strip().lower()


_ALIAS_KEYS = {
    target: [_normalize_header(alias) for alias in aliases]
    for target, aliases in FIELD_ALIASES.items()
}


def _clean(value):
    if value is None:
        return ""
    if isinstance(value, float):
        if pd.isna(value):
            return ""
        if value.is_integer():
            value = int(value)
    text = str(value).strip()
    if text.lower() == "nan":
        return ""
    # Spreadsheet numbers read as text keep a trailing ".0"
    if re.fullmatch(r"\d+\.0", text):
        text = text[:-2]
    return text


@dataclass
class ImportRow:
    row_number: int
    values: Dict[str, Optional[str]]
    valid: bool = True
    reason: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    class_id: Optional[int] = None

    def to_dict(self):
        return {
            "row": self.row_number,
            "values": self.values,
            "valid": self.valid,
            "reason": self.reason,
            "warnings": self.warnings,
            "class_id": self.class_id,
        }


def read_sheet(file):
    """Read an uploaded file into a list of {header: cell} dicts."""
    filename = getattr(file, "filename", "") or ""
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    if ext not in SUPPORTED_EXTENSIONS:
        raise ValidationError("Unsupported file format. Use CSV or Excel.")

    try:
        if ext == "csv":
            df = pd.read_csv(file, dtype=str, keep_default_na=False)
        else:
            df = pd.read_excel(file, dtype=str)
    except Exception as e:
        raise ValidationError("Failed to read file", details=str(e))

    df = df.fillna("")
    return df.to_dict(orient="records")


def normalize_row(raw, row_number):
    by_header = {_normalize_header(k): _clean(v) for k, v in raw.items()}
    values = {}
    for target, aliases in _ALIAS_KEYS.items():
        values[target] = next((by_header[a] for a in aliases if by_header.get(a)), None)

    row = ImportRow(row_number=row_number, values=values)
    if not values["full_name"]:
        row.valid = False
        row.reason = MISSING_NAME
    return row


def normalize_rows(records, default_class_id=None):
    class_lookup = {c.name.strip().lower(): c.id for c in SchoolClass.query.all()}
    id_pattern = re.compile(current_app.config["NATIONAL_ID_PATTERN"])
    rows = []
    # Header is line 1 of the sheet
    for offset, raw in enumerate(records, start=2):
        row = normalize_row(raw, offset)
        national_id = row.values.get("national_id")
        if row.valid and national_id and not id_pattern.match(national_id):
            row.valid = False
            row.reason = INVALID_NATIONAL_ID
        row.class_id = default_class_id
        class_name = row.values.get("class_name")
        if class_name:
            matched = class_lookup.get(class_name.strip().lower())
            if matched:
                row.class_id = matched
            else:
                row.warnings.append(f"unknown class '{class_name}'")
        rows.append(row)
    return rows


def _to_student(row):
    return Student(
        full_name=row.values["full_name"],
        academic_number=row.values.get("academic_number"),
        national_id=row.values.get("national_id"),
        parent_phone=row.values.get("parent_phone"),
        class_id=row.class_id,
    )


def insert_students(rows):
    """
    Insert the valid rows as one batch; if the batch fails, retry row by
    row so the failing rows can be reported individually.
    """
    candidates = [row for row in rows if row.valid]
    result = BatchResult()
    if not candidates:
        return result

    students = [_to_student(row) for row in candidates]
    try:
        db.session.add_all(students)
        db.session.commit()
        result.success_count = len(students)
        result.records = students
        return result
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.info("Batch student import failed, retrying row by row: %s", e)

    for row in candidates:
        student = _to_student(row)
        try:
            db.session.add(student)
            db.session.commit()
            result.success_count += 1
            result.records.append(student)
        except SQLAlchemyError as e:
            db.session.rollback()
            result.failure_count += 1
            result.failures.append({"row": row.row_number, "full_name": row.values["full_name"],
                                    "error": str(getattr(e, "orig", e))})
    return result

from datetime import date, datetime


def parse_date(value, field="date"):
    """Parse an ISO ``YYYY-MM-DD`` string, raising ValueError with the field name."""
    if isinstance(value, date):
        return value
    if not value:
        raise ValueError(f"{field} is required")
    try:
        return datetime.strptime(str(value), "%Y-%m-%d").date()
    except ValueError:
        raise ValueError(f"Invalid {field} format, expected YYYY-MM-DD")


def parse_optional_int(value):
    if value in (None, "", "all"):
        return None
    return int(value)


def entries_from_payload(data):
    """
    Accept sheet rows either as ``{"entries": {student_id: {...}}}`` or as
    ``{"records": [{"student_id": ..., ...}]}`` and return the dict form.
    """
    if isinstance(data.get("entries"), dict):
        return {int(k): dict(v or {}) for k, v in data["entries"].items()}
    entries = {}
    for row in data.get("records") or []:
        row = dict(row)
        entries[int(row.pop("student_id"))] = row
    return entries

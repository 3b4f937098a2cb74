from io import BytesIO
from datetime import date
from flask import Blueprint, request, jsonify, send_file
from flask_jwt_extended import jwt_required
from schooldesk.models import SiteSetting
from schooldesk.services import reports
from schooldesk.services.exports import PDF_MIMETYPE, XLSX_MIMETYPE, to_excel, to_pdf
from schooldesk.services.grading import format_percentage
from utils.decorators import role_required
from utils.access_control import get_allowed_class_ids
from utils.serialization import parse_date

reports_bp = Blueprint('reports', __name__)

FORMATS = {"json", "xlsx", "pdf"}


def _filters(actor):
    """Shared query-string filters: class_id, student_id, from, to, format."""
    class_id = request.args.get('class_id', type=int)
    class_ids = get_allowed_class_ids(actor, class_id)
    if actor.is_admin and not class_id:
        class_ids = None

    start = parse_date(request.args['from'], 'from') if request.args.get('from') else None
    end = parse_date(request.args['to'], 'to') if request.args.get('to') else None
    if start and end and start > end:
        raise ValueError("'from' must not be after 'to'")

    fmt = (request.args.get('format') or 'json').lower()
    if fmt not in FORMATS:
        raise ValueError(f"Unsupported format: {fmt}")
    return class_ids, start, end, request.args.get('student_id', type=int), fmt


def _period_label(start, end):
    if start or end:
        return f"{start.isoformat() if start else '…'} - {end.isoformat() if end else '…'}"
    return None


def _school_title(suffix):
    school = SiteSetting.get_value("school_name")
    return f"{school} - {suffix}" if school else suffix


def _download(content, mimetype, name):
    stamp = date.today().isoformat()
    ext = "xlsx" if mimetype == XLSX_MIMETYPE else "pdf"
    return send_file(BytesIO(content), mimetype=mimetype, as_attachment=True,
                     download_name=f"{name}_{stamp}.{ext}")


@reports_bp.route('/attendance', methods=['GET'])
@jwt_required()
@role_required('admin', 'teacher')
def attendance(actor):
    try:
        class_ids, start, end, student_id, fmt = _filters(actor)
    except PermissionError as e:
        return jsonify({"error": str(e)}), 403
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    report = reports.attendance_report(class_ids, start, end, student_id)
    if fmt == "json":
        return jsonify(report), 200

    labels = reports.ATTENDANCE_LABELS
    if fmt == "xlsx":
        rows = [{"اسم الطالب": r["full_name"], "التاريخ": r["date"],
                 "الحالة": labels.get(r["status"], r["status"]), "ملاحظات": r["notes"] or ""}
                for r in report["records"]]
        content = to_excel(rows, ("اسم الطالب", "التاريخ", "الحالة", "ملاحظات"),
                           sheet_name="الحضور", widths=(30, 12, 14, 40))
        return _download(content, XLSX_MIMETYPE, "attendance_report")

    content = to_pdf(_school_title("Attendance Report"), ("Student", "Date", "Status", "Notes"),
                     [(r["full_name"], r["date"], r["status"], r["notes"]) for r in report["records"]],
                     subtitle=_period_label(start, end))
    return _download(content, PDF_MIMETYPE, "attendance_report")


@reports_bp.route('/behavior', methods=['GET'])
@jwt_required()
@role_required('admin', 'teacher')
def behavior(actor):
    try:
        class_ids, start, end, student_id, fmt = _filters(actor)
    except PermissionError as e:
        return jsonify({"error": str(e)}), 403
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    report = reports.behavior_report(class_ids, start, end, student_id)
    if fmt == "json":
        return jsonify(report), 200

    labels = reports.BEHAVIOR_LABELS
    if fmt == "xlsx":
        rows = [{"اسم الطالب": r["full_name"], "التاريخ": r["date"],
                 "النوع": labels.get(r["type"], r["type"]), "ملاحظات": r["note"] or ""}
                for r in report["records"]]
        content = to_excel(rows, ("اسم الطالب", "التاريخ", "النوع", "ملاحظات"),
                           sheet_name="السلوك", widths=(30, 12, 10, 40))
        return _download(content, XLSX_MIMETYPE, "behavior_report")

    content = to_pdf(_school_title("Behavior Report"), ("Student", "Date", "Type", "Notes"),
                     [(r["full_name"], r["date"], r["type"], r["note"]) for r in report["records"]],
                     subtitle=_period_label(start, end))
    return _download(content, PDF_MIMETYPE, "behavior_report")


@reports_bp.route('/grades', methods=['GET'])
@jwt_required()
@role_required('admin', 'teacher')
def grades(actor):
    try:
        class_ids, _, _, _, fmt = _filters(actor)
    except PermissionError as e:
        return jsonify({"error": str(e)}), 403
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    sheets = reports.grades_report(class_ids if class_ids is not None else get_allowed_class_ids(actor))
    if fmt == "json":
        return jsonify(sheets), 200

    category_names = []
    for sheet in sheets:
        for c in sheet["categories"]:
            if c["name"] not in category_names:
                category_names.append(c["name"])

    flat = []
    for sheet in sheets:
        names = {c["id"]: c["name"] for c in sheet["categories"]}
        for row in sheet["rows"]:
            entry = {"الفصل": sheet["class"]["name"], "اسم الطالب": row["full_name"]}
            for category_id, score in row["scores"].items():
                entry[names[category_id]] = score
            entry["المجموع"] = format_percentage(row["percentage"])
            flat.append(entry)

    if fmt == "xlsx":
        columns = ["الفصل", "اسم الطالب"] + category_names + ["المجموع"]
        content = to_excel(flat, columns, sheet_name="الدرجات")
        return _download(content, XLSX_MIMETYPE, "grades_report")

    headers = ["Class", "Student"] + category_names + ["Total %"]
    rows = [[r["الفصل"], r["اسم الطالب"]] + [r.get(n) for n in category_names] + [r["المجموع"]] for r in flat]
    content = to_pdf(_school_title("Grades Report"), headers, rows)
    return _download(content, PDF_MIMETYPE, "grades_report")

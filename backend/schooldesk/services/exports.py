"""
Spreadsheet and PDF rendering for reports.

Both helpers return raw bytes; the routes wrap them with send_file.
"""
from io import BytesIO

import pandas as pd

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_MIMETYPE = "application/pdf"

NOOR_NO_ID = "غير مسجل"
NOOR_NO_SCORE = "لم تُدخل"
NOOR_SHEET = "درجات نور"
NOOR_COLUMNS = ("رقم الهوية", "اسم الطالب", "الدرجة")


def to_excel(rows, columns, sheet_name="Sheet1", widths=None):
    """
    Args:
      rows: list of dicts keyed by column header.
      columns: ordered column headers.
      widths: optional column widths (characters), one per column.
    """
    df = pd.DataFrame(rows, columns=list(columns))
    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False)
        if widths:
            from openpyxl.utils import get_column_letter

            sheet = writer.sheets[sheet_name]
            for i, width in enumerate(widths, start=1):
                sheet.column_dimensions[get_column_letter(i)].width = width
    return buffer.getvalue()


def noor_rows(students, grades_by_student):
    rows = []
    for student in students:
        grade = grades_by_student.get(student.id)
        score = grade.score if grade is not None else None
        rows.append({
            NOOR_COLUMNS[0]: student.national_id or NOOR_NO_ID,
            NOOR_COLUMNS[1]: student.full_name,
            NOOR_COLUMNS[2]: score if score is not None else NOOR_NO_SCORE,
        })
    return rows


def noor_filename(class_name, category_name):
    return f"نور_{class_name}_{category_name}.xlsx"


def to_pdf(title, headers, rows, subtitle=None, landscape_mode=True):
    """Render a simple table report. ``rows`` are sequences aligned with ``headers``."""
    from reportlab.lib import colors
    from reportlab.lib.pagesizes import A4, landscape
    from reportlab.lib.styles import getSampleStyleSheet
    from reportlab.lib.units import inch
    from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

    buffer = BytesIO()
    pagesize = landscape(A4) if landscape_mode else A4
    doc = SimpleDocTemplate(buffer, pagesize=pagesize,
                            leftMargin=0.5 * inch, rightMargin=0.5 * inch,
                            topMargin=0.5 * inch, bottomMargin=0.5 * inch)
    styles = getSampleStyleSheet()

    story = [Paragraph(title, styles["Title"])]
    if subtitle:
        story.append(Paragraph(subtitle, styles["Normal"]))
    story.append(Spacer(1, 12))

    data = [list(headers)] + [["" if cell is None else str(cell) for cell in row] for row in rows]
    table = Table(data, repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#1e40af")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f1f5f9")]),
    ]))
    story.append(table)

    doc.build(story)
    return buffer.getvalue()

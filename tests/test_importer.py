"""
Test: spreadsheet header aliases, row validation and batch insert fallback.
"""
from io import BytesIO

import pytest
from werkzeug.datastructures import FileStorage

from schooldesk.errors import ValidationError
from schooldesk.models import Student
from schooldesk.services import importer


class TestNormalizeRow:
    def test_english_name_only(self):
        row = importer.normalize_row({"Name": "Sara Ali"}, 2)
        assert row.valid
        assert row.values == {
            "full_name": "Sara Ali",
            "academic_number": None,
            "national_id": None,
            "parent_phone": None,
            "class_name": None,
        }

    def test_missing_name_is_invalid(self):
        row = importer.normalize_row({"Phone": "0512345678"}, 3)
        assert not row.valid
        assert row.reason == importer.MISSING_NAME
        assert row.values["parent_phone"] == "0512345678"

    def test_arabic_headers(self):
        row = importer.normalize_row({
            "اسم الطالب": "سارة علي",
            "رقم الهوية": "1111111111",
            "جوال ولي الأمر": "0512345678",
            "الفصل": "1/A",
        }, 2)
        assert row.valid
        assert row.values["full_name"] == "سارة علي"
        assert row.values["national_id"] == "1111111111"
        assert row.values["parent_phone"] == "0512345678"
        assert row.values["class_name"] == "1/A"

    def test_first_non_empty_alias_wins(self):
        row = importer.normalize_row({"اسم الطالب": "", "الاسم": "Omar", "Name": "Ignored"}, 2)
        assert row.values["full_name"] == "Omar"

    def test_header_spacing_and_case(self):
        row = importer.normalize_row({"  Full_Name ": "Lina", "NATIONAL ID": 3333333333.0}, 2)
        assert row.values["full_name"] == "Lina"
        assert row.values["national_id"] == "3333333333"


def _csv(text, name="students.csv"):
    return FileStorage(stream=BytesIO(text.encode("utf-8")), filename=name)


def test_read_sheet_rejects_unknown_extension():
    with pytest.raises(ValidationError):
        importer.read_sheet(_csv("Name\nA\n", name="students.txt"))


def test_read_sheet_keeps_leading_zeros():
    records = importer.read_sheet(_csv("Name,Phone\nSara,0512345678\n"))
    assert records == [{"Name": "Sara", "Phone": "0512345678"}]


def test_normalize_rows_resolves_class_names(db, school):
    rows = importer.normalize_rows([
        {"Name": "New One", "Class": "1/B"},
        {"Name": "New Two", "Class": "9/Z"},
    ], default_class_id=school["class_a"].id)

    assert rows[0].class_id == school["class_b"].id
    assert rows[1].class_id == school["class_a"].id
    assert rows[1].warnings == ["unknown class '9/Z'"]


def test_normalize_rows_rejects_malformed_national_id(db, school):
    rows = importer.normalize_rows([
        {"Name": "Short Id", "National ID": "12345"},
        {"Name": "Good Id", "National ID": "0123456789"},
    ])

    assert (rows[0].valid, rows[0].reason) == (False, importer.INVALID_NATIONAL_ID)
    assert rows[1].valid


def test_insert_falls_back_to_row_by_row(db, school):
    rows = importer.normalize_rows([
        {"Name": "Fresh Student", "National ID": "5555555555"},
        # Collides with an existing student's national id
        {"Name": "Duplicate", "National ID": "1111111111"},
        {"Phone": "0500000000"},
    ])

    result = importer.insert_students(rows)

    assert result.success_count == 1
    assert result.failure_count == 1
    assert result.failures[0]["row"] == 3
    assert Student.query.filter_by(national_id="5555555555").count() == 1
    assert Student.query.filter_by(full_name="Duplicate").count() == 0


class TestImportApi:
    def test_preview_keeps_invalid_rows(self, client, admin_headers, school):
        data = {"file": (BytesIO("Name,Phone\nSara New,0511111111\n,0522222222\n".encode()), "s.csv"),
                "class_id": str(school["class_a"].id)}
        res = client.post("/students/import/preview", data=data, headers=admin_headers,
                          content_type="multipart/form-data")

        assert res.status_code == 200
        body = res.get_json()
        assert body["valid_count"] == 1
        assert body["invalid_count"] == 1
        assert body["rows"][1]["reason"] == importer.MISSING_NAME
        assert Student.query.filter_by(full_name="Sara New").count() == 0

    def test_import_inserts_valid_rows(self, client, admin_headers, school):
        data = {"file": (BytesIO("Name,Phone\nSara New,0511111111\n,0522222222\n".encode()), "s.csv"),
                "class_id": str(school["class_a"].id)}
        res = client.post("/students/import", data=data, headers=admin_headers,
                          content_type="multipart/form-data")

        body = res.get_json()
        assert res.status_code == 200
        assert body["success_count"] == 1
        assert body["failure_count"] == 0
        assert len(body["skipped"]) == 1
        student = Student.query.filter_by(full_name="Sara New").one()
        assert student.class_id == school["class_a"].id

    def test_teacher_cannot_import(self, client, teacher_headers):
        data = {"file": (BytesIO(b"Name\nA\n"), "s.csv")}
        res = client.post("/students/import", data=data, headers=teacher_headers,
                          content_type="multipart/form-data")
        assert res.status_code == 403

"""
Tests for core/parser.py — roster parsing, column mapping, sheet splitting, validation.
"""

import os
import sys
import pytest
import pandas as pd

# Ensure backend/ is on the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.parser import (
    apply_column_mapping,
    parse_upload,
    split_roster,
    suggest_column_mapping,
    validate_roster,
)

SAMPLE_CSV = os.path.join(os.path.dirname(__file__), "..", "sample_data", "sample_roster.csv")


class TestParseUpload:
    """Tests for the parse_upload function."""

    def test_csv_parse_returns_dict(self):
        result = parse_upload(SAMPLE_CSV)
        assert isinstance(result, dict)
        assert list(result.keys()) == ["Sheet1"]

    def test_csv_parse_reads_strings(self):
        df = parse_upload(SAMPLE_CSV)["Sheet1"]
        assert len(df) == 10
        assert df.iloc[0]["Öğrenci No"] == "1001"

    def test_unsupported_extension_raises(self, tmp_path):
        path = tmp_path / "roster.txt"
        path.write_text("x")
        with pytest.raises(ValueError):
            parse_upload(str(path))

    def test_missing_file_raises(self):
        with pytest.raises(Exception):
            parse_upload("nonexistent_file.csv")

    def test_xlsx_with_teacher_sheet(self, tmp_path):
        path = tmp_path / "roster.xlsx"
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            pd.DataFrame({
                "Öğrenci Adı": ["Ali", "Ece"],
                "Öğretmen": ["Ayşe Yılmaz", "Mehmet Demir"],
                "Sınıf": ["5", "6"],
                "Kayıt Yeniledi": ["Evet", "Hayır"],
            }).to_excel(writer, sheet_name="Öğrenciler", index=False)
            pd.DataFrame({"Ad Soyad": ["Ayşe Yılmaz", "Mehmet Demir"]}).to_excel(
                writer, sheet_name="Öğretmenler", index=False
            )
        sheets = parse_upload(str(path))
        assert set(sheets) == {"Öğrenciler", "Öğretmenler"}

        students, teachers = split_roster(sheets)
        assert {"name", "teacher_name", "class_name", "renewed"} <= set(students.columns)
        assert teachers["name"].tolist() == ["Ayşe Yılmaz", "Mehmet Demir"]


class TestSuggestColumnMapping:
    """Tests for automatic column mapping suggestion."""

    def test_turkish_headers(self):
        df = parse_upload(SAMPLE_CSV)["Sheet1"]
        mapping = suggest_column_mapping(df)
        assert mapping == {
            "student_id": "Öğrenci No",
            "name": "Ad Soyad",
            "teacher_name": "Öğretmen",
            "class_name": "Sınıf",
            "renewed": "Kayıt Yeniledi",
        }

    def test_english_headers(self):
        df = pd.DataFrame(columns=["Student ID", "Name", "Teacher", "Class", "Renewed"])
        mapping = suggest_column_mapping(df)
        assert mapping["teacher_name"] == "Teacher"
        assert mapping["renewed"] == "Renewed"

    def test_all_caps_turkish_headers(self):
        df = pd.DataFrame(columns=["ÖĞRENCİ NO", "ADI SOYADI", "ÖĞRETMEN", "SINIF", "KAYIT YENİLEDİ"])
        assert suggest_column_mapping(df) == {
            "student_id": "ÖĞRENCİ NO",
            "name": "ADI SOYADI",
            "teacher_name": "ÖĞRETMEN",
            "class_name": "SINIF",
            "renewed": "KAYIT YENİLEDİ",
        }

    def test_ascii_spelled_headers(self):
        df = pd.DataFrame(columns=["Ogretmen Adi", "Kayit Durumu"])
        mapping = suggest_column_mapping(df)
        assert mapping["teacher_name"] == "Ogretmen Adi"
        assert mapping["renewed"] == "Kayit Durumu"

    def test_unmapped_fields_are_none(self):
        df = pd.DataFrame(columns=["Öğretmen", "Kayıt Yeniledi"])
        mapping = suggest_column_mapping(df)
        assert mapping["class_name"] is None
        assert mapping["student_id"] is None

    def test_apply_column_mapping(self):
        df = pd.DataFrame({"Öğretmen": ["A"], "Durum": ["Evet"]})
        renamed = apply_column_mapping(df, suggest_column_mapping(df))
        assert list(renamed.columns) == ["teacher_name", "renewed"]


class TestSplitRoster:
    """Tests for picking the student and teacher sheets."""

    def test_single_sheet_has_no_teacher_list(self):
        students, teachers = split_roster(parse_upload(SAMPLE_CSV))
        assert teachers is None
        assert "teacher_name" in students.columns
        assert len(students) == 10

    def test_teacher_sheet_by_content(self):
        sheets = {
            "Sheet1": pd.DataFrame({"Öğretmen": ["A"], "Kayıt Yeniledi": ["Evet"]}),
            "Sheet2": pd.DataFrame({"Öğretmen Adı": ["A", "B"]}),
        }
        students, teachers = split_roster(sheets)
        assert len(students) == 1
        assert teachers["name"].tolist() == ["A", "B"]

    def test_all_caps_teacher_sheet_name(self):
        sheets = {
            "ÖĞRENCİLER": pd.DataFrame({"ÖĞRETMEN": ["A"], "KAYIT YENİLEDİ": ["EVET"]}),
            "ÖĞRETMENLER": pd.DataFrame({"ADI SOYADI": ["A"]}),
        }
        students, teachers = split_roster(sheets)
        assert {"teacher_name", "renewed"} <= set(students.columns)
        assert teachers["name"].tolist() == ["A"]


class TestValidateRoster:
    """Tests for roster validation."""

    def test_sample_is_valid(self):
        students, _ = split_roster(parse_upload(SAMPLE_CSV))
        issues = validate_roster(students)
        assert not [i for i in issues if i["severity"] == "critical"]

    def test_missing_required_columns(self):
        issues = validate_roster(pd.DataFrame({"name": ["Ali"]}))
        missing = {i["message"].split("'")[1] for i in issues if i["type"] == "missing_column"
                   and i["severity"] == "critical"}
        assert missing == {"teacher_name", "renewed"}

    def test_empty_data_is_critical(self):
        issues = validate_roster(pd.DataFrame(columns=["teacher_name", "renewed", "class_name"]))
        assert any(i["type"] == "empty_data" and i["severity"] == "critical" for i in issues)

    def test_duplicate_ids_warn(self):
        df = pd.DataFrame({
            "student_id": ["1", "1"],
            "teacher_name": ["A", "A"],
            "class_name": ["5", "5"],
            "renewed": ["Evet", "Hayır"],
        })
        issues = validate_roster(df)
        assert any(i["type"] == "duplicates" for i in issues)

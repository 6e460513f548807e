"""
Tests for core/cleaner.py — renewal flags, class labels, deduplication, teacher list.
"""

import os
import sys
import pytest
import numpy as np
import pandas as pd

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.cleaner import (
    clean_roster,
    generate_cleaning_report,
    normalize_class_name,
    parse_renewed,
)


@pytest.fixture
def students_df():
    """A small mapped student frame with messy values."""
    return pd.DataFrame({
        "student_id": ["1", "2", "3", "3", "4"],
        "name": [" Ali ", "Ece", "Can", "Can", "Deniz"],
        "teacher_name": ["Ayşe", "Ayşe ", "Mehmet", "Mehmet", "Zeki"],
        "class_name": ["5. Sınıf", "5", "6.0", "6.0", ""],
        "renewed": ["Evet", "hayır", "x", "1", "belki"],
    })


class TestParseRenewed:
    """Tests for renewal flag parsing."""

    @pytest.mark.parametrize("value", [True, "Evet", "EVET", " yes ", "1", 1, 1.0, "✓", "Yenilendi"])
    def test_truthy(self, value):
        assert parse_renewed(value) is True

    @pytest.mark.parametrize("value", [False, "Hayır", "no", "0", 0, None, np.nan, "", "belki"])
    def test_falsy(self, value):
        assert parse_renewed(value) is False


class TestNormalizeClassName:
    """Tests for class label normalisation."""

    @pytest.mark.parametrize("raw,expected", [
        ("5", "5"),
        ("5. Sınıf", "5"),
        ("7. sınıflar", "7"),
        ("8.0", "8"),
        (6.0, "6"),
        ("Hazırlık", "Hazırlık"),
        ("Anasınıfı", "Anasınıfı"),
        ("5A", "5A"),
        ("  ", None),
        (None, None),
        (np.nan, None),
    ])
    def test_values(self, raw, expected):
        assert normalize_class_name(raw) == expected


class TestCleanRoster:
    """Tests for the clean_roster pipeline."""

    def test_returns_frames_and_report(self, students_df):
        students, teachers, report = clean_roster(students_df)
        assert isinstance(students, pd.DataFrame)
        assert isinstance(teachers, pd.DataFrame)
        assert isinstance(report, dict)

    def test_renewed_is_bool(self, students_df):
        students, _, report = clean_roster(students_df)
        assert students["renewed"].dtype == bool
        assert students["renewed"].tolist() == [True, False, True, False]
        assert any("not recognised" in w for w in report["warnings"])

    def test_trims_whitespace(self, students_df):
        students, _, _ = clean_roster(students_df)
        assert students.loc[0, "name"] == "Ali"
        assert students.loc[1, "teacher_name"] == "Ayşe"

    def test_class_labels(self, students_df):
        students, _, _ = clean_roster(students_df)
        assert students["class_name"].tolist()[:3] == ["5", "5", "6"]
        assert pd.isna(students["class_name"].tolist()[3])

    def test_deduplicates_by_student_id_keeping_last(self, students_df):
        students, _, report = clean_roster(students_df)
        assert len(students) == 4
        assert report["cleaned_students"] == 4
        row = students[students["student_id"] == "3"].iloc[0]
        assert bool(row["renewed"]) is True

    def test_derives_teachers_in_first_appearance_order(self, students_df):
        _, teachers, report = clean_roster(students_df)
        assert teachers["name"].tolist() == ["Ayşe", "Mehmet", "Zeki"]
        assert report["teacher_count"] == 3

    def test_teacher_list_is_cleaned(self, students_df):
        teachers_in = pd.DataFrame({"name": ["Ayşe", " Mehmet ", "Ayşe", None]})
        _, teachers, report = clean_roster(students_df, teachers_in)
        assert teachers["name"].tolist() == ["Ayşe", "Mehmet"]
        assert any("Zeki" in w for w in report["warnings"])

    def test_without_student_ids_dedups_on_name_teacher_class(self):
        df = pd.DataFrame({
            "name": ["Ali", "Ali", "Ali"],
            "teacher_name": ["Ayşe", "Ayşe", "Ayşe"],
            "class_name": ["5", "5", "6"],
            "renewed": ["Evet", "Hayır", "Evet"],
        })
        students, _, _ = clean_roster(df)
        assert len(students) == 2

    def test_missing_columns_are_added(self):
        df = pd.DataFrame({"teacher_name": ["Ayşe"], "renewed": ["Evet"]})
        students, _, _ = clean_roster(df)
        for col in ("student_id", "name", "class_name"):
            assert col in students.columns


class TestGenerateCleaningReport:
    """Tests for the text report."""

    def test_report_text(self, students_df):
        _, _, report = clean_roster(students_df)
        text = generate_cleaning_report(report)
        assert "Roster Cleaning Report" in text
        assert "Warnings" in text

"""
parser.py — Roster ingestion from CSV, Excel and ODS files.

Supports:
- CSV files
- Excel (.xlsx, .xls) — single and multi-sheet
- ODS (OpenDocument Spreadsheet)
- Turkish and English header aliases
- Separate teacher sheet, or teachers derived from the student list
"""

from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd

from core.cleaner import find_column, fold_header

SAMPLE_DATA_DIR = Path(__file__).parent.parent / "sample_data"

SUPPORTED_EXTENSIONS = (".csv", ".xlsx", ".xls", ".ods")

# Common column name variations for auto-mapping
COLUMN_ALIASES = {
    "student_id": [
        "student_id", "studentid", "student id", "id", "öğrenci no",
        "ogrenci no", "öğrenci numarası", "okul no", "okul numarası", "no",
        "numara", "tc", "tc kimlik no",
    ],
    "name": [
        "name", "student_name", "student name", "full_name", "full name",
        "öğrenci", "öğrenci adı", "öğrenci adı soyadı", "ogrenci adi",
        "ad soyad", "adı soyadı", "ad", "isim",
    ],
    "teacher_name": [
        "teacher_name", "teachername", "teacher name", "teacher",
        "öğretmen", "öğretmen adı", "öğretmen adı soyadı", "ogretmen",
        "ogretmen adi", "sorumlu öğretmen", "danışman", "danışman öğretmen",
        "rehber öğretmen",
    ],
    "class_name": [
        "class_name", "classname", "class name", "class", "grade",
        "sınıf", "sinif", "sınıfı", "sınıf seviyesi", "seviye",
    ],
    "renewed": [
        "renewed", "renewal", "is_renewed", "kayıt yeniledi",
        "kayıt yenileme", "kayıt yenilendi", "kayit yeniledi", "yenilendi",
        "yeniledi", "kayıt durumu", "durum",
    ],
}

TEACHER_SHEET_HINTS = ("öğretmen", "ogretmen", "teacher")


def parse_upload(file_path: str) -> Dict[str, pd.DataFrame]:
    """
    Parse an uploaded roster and return a dict of {sheet_name: DataFrame}.
    For CSV files, returns {"Sheet1": df}.
    """
    path = Path(file_path)
    ext = path.suffix.lower()

    if ext == ".csv":
        df = pd.read_csv(file_path, dtype=str)
        return {"Sheet1": df}

    elif ext in (".xlsx", ".xls", ".ods"):
        engine = {".xlsx": "openpyxl", ".xls": "xlrd", ".ods": "odf"}[ext]
        xls = pd.ExcelFile(file_path, engine=engine)
        sheets = {}
        for sheet_name in xls.sheet_names:
            df = pd.read_excel(xls, sheet_name=sheet_name, dtype=str)
            # Skip empty sheets
            if not df.empty:
                sheets[sheet_name] = df
        if not sheets:
            raise ValueError(f"No valid sheets found in the {ext} file.")
        return sheets

    else:
        raise ValueError(f"Unsupported file type: {ext}")


def suggest_column_mapping(df: pd.DataFrame) -> Dict[str, Optional[str]]:
    """
    Suggest a mapping from expected field names to actual column names.
    Returns: { expected_field: actual_column_name_or_None }
    """
    mapping: Dict[str, Optional[str]] = {}
    used = set()
    for field, aliases in COLUMN_ALIASES.items():
        matched = find_column(df.drop(columns=list(used)), aliases)
        mapping[field] = matched
        if matched is not None:
            used.add(matched)
    return mapping


def apply_column_mapping(df: pd.DataFrame, mapping: Dict[str, Optional[str]]) -> pd.DataFrame:
    """Rename mapped columns to their canonical field names."""
    rename_map = {v: k for k, v in mapping.items() if v and v in df.columns}
    return df.rename(columns=rename_map)


def _is_teacher_sheet(sheet_name: str, df: pd.DataFrame) -> bool:
    folded = fold_header(sheet_name)
    if any(fold_header(hint) in folded for hint in TEACHER_SHEET_HINTS):
        return True
    mapping = suggest_column_mapping(df)
    mapped = {k for k, v in mapping.items() if v}
    return mapped == {"name"} or mapped == {"teacher_name"}


def _teacher_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Teacher sheet → frame with a canonical 'name' column."""
    mapping = suggest_column_mapping(df)
    name_col = mapping.get("teacher_name") or mapping.get("name")
    if name_col is None:
        name_col = df.columns[0]
    rename_map = {name_col: "name"}
    if mapping.get("student_id") and mapping["student_id"] != name_col:
        rename_map[mapping["student_id"]] = "teacher_id"
    return df.rename(columns=rename_map)


def split_roster(sheets: Dict[str, pd.DataFrame]) -> Tuple[pd.DataFrame, Optional[pd.DataFrame]]:
    """
    Pick the student and teacher frames out of the parsed sheets.

    The student sheet is the first one carrying a teacher column. A sheet
    named like a teacher list, or holding a single name column, is the
    teacher list. Returns (students_df, teachers_df_or_None) with canonical
    column names.
    """
    students_df: Optional[pd.DataFrame] = None
    teachers_df: Optional[pd.DataFrame] = None

    for sheet_name, df in sheets.items():
        mapping = suggest_column_mapping(df)
        if students_df is None and mapping.get("teacher_name") and len(
            [v for v in mapping.values() if v]
        ) > 1:
            students_df = apply_column_mapping(df, mapping)
        elif teachers_df is None and _is_teacher_sheet(sheet_name, df):
            teachers_df = _teacher_frame(df)

    if students_df is None:
        first = next(iter(sheets.values()))
        students_df = apply_column_mapping(first, suggest_column_mapping(first))

    return students_df, teachers_df


def validate_roster(df: pd.DataFrame) -> List[Dict]:
    """
    Validate the mapped student frame and return a list of issues found.
    """
    issues = []

    for field in ("teacher_name", "renewed"):
        if field not in df.columns:
            issues.append({
                "type": "missing_column",
                "severity": "critical",
                "message": f"Required column '{field}' not found. "
                           f"Expected one of: {COLUMN_ALIASES.get(field, [])}",
            })

    if "class_name" not in df.columns:
        issues.append({
            "type": "missing_column",
            "severity": "warning",
            "message": "No class column found; every student will be grouped as 'Belirtilmemiş'.",
        })

    # Check for empty dataframe
    if len(df) == 0:
        issues.append({
            "type": "empty_data",
            "severity": "critical",
            "message": "The uploaded file contains no student rows.",
        })

    if "student_id" in df.columns:
        ids = df["student_id"].dropna()
        dupe_count = int(ids.duplicated(keep=False).sum())
        if dupe_count > 0:
            issues.append({
                "type": "duplicates",
                "severity": "warning",
                "message": f"{dupe_count} rows share a student number; the last one is kept.",
            })

    return issues

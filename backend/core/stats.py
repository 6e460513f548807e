"""
stats.py — Registration-renewal aggregations.

Computes:
- Teacher leaderboard (per-teacher renewal percentage, sorted descending)
- School-wide renewal totals and percentage
- Per-class renewed / not-renewed breakdown for the pie charts
- Teacher detail (a teacher's own students)

Every function is pure: the same roster always produces the same output.
"""

import re
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from core.cleaner import parse_renewed

UNSPECIFIED_CLASS = "Belirtilmemiş"
CLASS_SUFFIX = ". Sınıflar"

STUDENT_COLUMNS = ["student_id", "name", "teacher_name", "class_name", "renewed"]
TEACHER_COLUMNS = ["name"]

Records = Union[pd.DataFrame, Iterable[Dict[str, Any]]]

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


# ── Helpers ─────────────────────────────────────────────────────────

def _sanitize(obj):
    """Recursively coerce numpy/pandas scalars to JSON-safe Python types."""
    if isinstance(obj, dict):
        return {k: _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_sanitize(v) for v in obj]
    if isinstance(obj, (np.bool_,)):
        return bool(obj)
    if isinstance(obj, (np.integer,)):
        return int(obj)
    if isinstance(obj, (np.floating, float)):
        v = float(obj)
        return None if (np.isnan(v) or np.isinf(v)) else v
    if obj is pd.NaT:
        return None
    return obj


def _as_frame(records: Optional[Records], columns: List[str]) -> pd.DataFrame:
    """Build a DataFrame from records, adding any missing expected columns."""
    if records is None:
        df = pd.DataFrame()
    elif isinstance(records, pd.DataFrame):
        df = records.copy()
    else:
        df = pd.DataFrame(list(records))
    for col in columns:
        if col not in df.columns:
            df[col] = None
    return df


def _renewed_mask(df: pd.DataFrame) -> pd.Series:
    return df["renewed"].map(parse_renewed).astype(bool)


def percentage(part: int, total: int) -> int:
    """round(part / total * 100) with halves rounded up; 0 when total is 0."""
    if total <= 0:
        return 0
    return (200 * part + total) // (2 * total)


def _class_key(value: Any) -> str:
    """Grouping key for a student's class field."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if not isinstance(value, str) and pd.isna(value):
        return UNSPECIFIED_CLASS
    label = str(value).strip()
    return label or UNSPECIFIED_CLASS


def class_display_name(label: str) -> str:
    """'5' -> '5. Sınıflar'; the unspecified label is left as-is."""
    if label == UNSPECIFIED_CLASS:
        return label
    return f"{label}{CLASS_SUFFIX}"


def _leading_int(name: str) -> Optional[int]:
    match = _LEADING_INT.match(name)
    return int(match.group(1)) if match else None


def _class_sort_key(name: str) -> Tuple[int, int, str]:
    """Numbered labels first (by number), then other labels, then the sentinel."""
    if name == UNSPECIFIED_CLASS:
        return (2, 0, name)
    number = _leading_int(name)
    if number is None:
        # Code-point order keeps results identical across locales.
        return (1, 0, name)
    return (0, number, name)


# ── Teacher Leaderboard ─────────────────────────────────────────────

def compute_teacher_stats(students: Records, teachers: Records) -> List[Dict[str, Any]]:
    """
    Renewal percentage per teacher, sorted descending.

    Students join teachers on exact equality of ``teacher_name`` and
    ``name``. Teachers without students get 0 students and 0%. Teachers
    with equal percentages keep their input order.
    """
    students_df = _as_frame(students, STUDENT_COLUMNS)
    teachers_df = _as_frame(teachers, TEACHER_COLUMNS)

    if teachers_df.empty:
        return []

    grouped = (
        pd.DataFrame({
            "teacher_name": students_df["teacher_name"],
            "renewed": _renewed_mask(students_df),
        })
        .groupby("teacher_name", sort=False)["renewed"]
        .agg(["size", "sum"])
    )
    counts = {key: (int(row["size"]), int(row["sum"])) for key, row in grouped.iterrows()}

    rows = []
    for teacher in teachers_df.to_dict(orient="records"):
        name = teacher.get("name")
        student_count, renewed_count = counts.get(name, (0, 0))
        rows.append({
            **teacher,
            "student_count": student_count,
            "renewal_percentage": percentage(renewed_count, student_count),
        })

    rows.sort(key=lambda r: r["renewal_percentage"], reverse=True)
    return _sanitize(rows)


# ── School Overview ─────────────────────────────────────────────────

def compute_overall_stats(students: Records) -> Dict[str, int]:
    """School-wide renewal totals."""
    students_df = _as_frame(students, STUDENT_COLUMNS)

    total = len(students_df)
    if total == 0:
        return {
            "total_student_count": 0,
            "renewed_student_count": 0,
            "not_renewed_student_count": 0,
            "overall_percentage": 0,
        }

    renewed = int(_renewed_mask(students_df).sum())
    return {
        "total_student_count": total,
        "renewed_student_count": renewed,
        "not_renewed_student_count": total - renewed,
        "overall_percentage": percentage(renewed, total),
    }


# ── Class Breakdown ─────────────────────────────────────────────────

def compute_class_stats(students: Records) -> List[Dict[str, Any]]:
    """
    Renewed / not-renewed counts per class level.

    Students without a class are grouped under "Belirtilmemiş", which is
    always last. Labels with a leading number sort numerically, the rest
    by code point.
    """
    students_df = _as_frame(students, STUDENT_COLUMNS)
    if students_df.empty:
        return []

    grouped = (
        pd.DataFrame({
            "class_name": students_df["class_name"].map(_class_key),
            "renewed": _renewed_mask(students_df),
        })
        .groupby("class_name", sort=False)["renewed"]
        .agg(["size", "sum"])
    )

    rows = [
        {
            "name": class_display_name(str(label)),
            "renewed": int(row["sum"]),
            "not_renewed": int(row["size"] - row["sum"]),
        }
        for label, row in grouped.iterrows()
    ]
    rows.sort(key=lambda r: _class_sort_key(r["name"]))
    return rows


# ── Dashboard ───────────────────────────────────────────────────────

def compute_dashboard(students: Records, teachers: Records) -> Dict[str, Any]:
    """All three dashboard views for one roster snapshot."""
    students_df = _as_frame(students, STUDENT_COLUMNS)
    teachers_df = _as_frame(teachers, TEACHER_COLUMNS)
    return {
        "teachers": compute_teacher_stats(students_df, teachers_df),
        "overall": compute_overall_stats(students_df),
        "classes": compute_class_stats(students_df),
    }


# ── Teacher Detail ──────────────────────────────────────────────────

def compute_teacher_detail(
    students: Records, teachers: Records, teacher_name: str
) -> Optional[Dict[str, Any]]:
    """Leaderboard row plus the students of one teacher, or None if unknown."""
    students_df = _as_frame(students, STUDENT_COLUMNS)
    teachers_df = _as_frame(teachers, TEACHER_COLUMNS)

    teacher_df = teachers_df[teachers_df["name"] == teacher_name]
    if teacher_df.empty:
        return None

    stat = compute_teacher_stats(students_df, teacher_df.head(1))[0]
    own = students_df[students_df["teacher_name"] == teacher_name]
    renewed = _renewed_mask(own)

    student_rows = own.to_dict(orient="records")
    for rec, flag in zip(student_rows, renewed.tolist()):
        rec["renewed"] = bool(flag)

    return _sanitize({
        "teacher": stat,
        "renewed_count": int(renewed.sum()),
        "not_renewed_count": int(len(own) - renewed.sum()),
        "students": student_rows,
    })

"""
cleaner.py — Pandas roster cleaning pipeline.

Handles:
- Whitespace trimming and empty-value normalisation
- Renewal flag standardisation (Evet/Hayır, true/false, 1/0, ✓...)
- Class label normalisation ("5. Sınıf" → "5")
- Student deduplication
- Teacher list cleanup
- Cleaning report generation
"""

import re
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd


# ── Renewal Flag Standardisation ────────────────────────────────────

RENEWED_MAP = {
    "evet": True, "e": True, "yes": True, "y": True, "true": True,
    "1": True, "x": True, "✓": True, "✔": True, "var": True,
    "yenilendi": True, "yeniledi": True, "renewed": True,
    "hayır": False, "hayir": False, "h": False, "no": False, "n": False,
    "false": False, "0": False, "yok": False, "-": False,
    "yenilenmedi": False, "yenilemedi": False, "not renewed": False,
}


def _lookup_renewed(value: Any) -> Optional[bool]:
    """Map a renewal cell to True/False, or None when it is not recognised."""
    if value is None:
        return None
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, (int, np.integer)):
        return bool(value)
    if isinstance(value, (float, np.floating)):
        if np.isnan(value):
            return None
        return bool(value)
    cleaned = str(value).strip().casefold()
    if cleaned.endswith(".0") and cleaned[:-2].isdigit():
        cleaned = cleaned[:-2]
    return RENEWED_MAP.get(cleaned)


def parse_renewed(value: Any) -> bool:
    """Renewal flag as bool; missing or unrecognised values count as not renewed."""
    return bool(_lookup_renewed(value))


# ── Class Normalisation ─────────────────────────────────────────────

_CLASS_SUFFIX = re.compile(r"(?:[\s.]+(?:sınıflar|sınıfı|sınıf|sinif))?[\s.]*$", re.IGNORECASE)


def normalize_class_name(value: Any) -> Optional[str]:
    """Reduce a class cell to its bare level label, e.g. '5. Sınıf' -> '5'."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if not isinstance(value, str) and pd.isna(value):
        return None
    label = str(value).strip()
    if re.fullmatch(r"\d+\.0", label):
        return label[:-2]
    label = _CLASS_SUFFIX.sub("", label).strip()
    return label or None


# ── Main Cleaning Pipeline ──────────────────────────────────────────

def clean_roster(
    students: pd.DataFrame,
    teachers: Optional[pd.DataFrame] = None,
) -> Tuple[pd.DataFrame, pd.DataFrame, Dict]:
    """
    Clean the student and teacher frames.

    Returns (students_df, teachers_df, cleaning_report).
    """
    report: Dict = {
        "original_students": len(students),
        "original_teachers": len(teachers) if teachers is not None else 0,
        "steps": [],
        "warnings": [],
    }

    cleaned = _trim_strings(students.copy())
    report["steps"].append("Trimmed whitespace from all string fields.")

    for col in ("student_id", "name", "teacher_name", "class_name", "renewed"):
        if col not in cleaned.columns:
            cleaned[col] = np.nan

    # ── 1. Renewal flag ────────────────────────────────────────────
    flags = cleaned["renewed"].map(_lookup_renewed)
    unrecognised = int(flags.isna().sum())
    cleaned["renewed"] = cleaned["renewed"].map(parse_renewed).astype(bool)
    if unrecognised > 0:
        report["warnings"].append(
            f"{unrecognised} renewal values were missing or not recognised; "
            "they are counted as not renewed."
        )
    report["steps"].append(
        f"Standardized renewal flags: {int(cleaned['renewed'].sum())} renewed, "
        f"{int((~cleaned['renewed']).sum())} not renewed."
    )

    # ── 2. Class labels ────────────────────────────────────────────
    original_classes = cleaned["class_name"].dropna().unique()
    cleaned["class_name"] = cleaned["class_name"].map(normalize_class_name)
    new_classes = cleaned["class_name"].dropna().unique()
    report["steps"].append(
        f"Normalized class labels: {list(original_classes)} → {list(new_classes)}"
    )
    missing_class = int(cleaned["class_name"].isna().sum())
    if missing_class > 0:
        report["warnings"].append(
            f"{missing_class} students have no class; they are grouped as 'Belirtilmemiş'."
        )

    # ── 3. Deduplication ───────────────────────────────────────────
    if cleaned["student_id"].notna().any():
        dedup_cols = ["student_id"]
    else:
        dedup_cols = ["name", "teacher_name", "class_name"]
    before = len(cleaned)
    has_key = cleaned[dedup_cols].notna().any(axis=1)
    cleaned = pd.concat([
        cleaned[has_key].drop_duplicates(subset=dedup_cols, keep="last"),
        cleaned[~has_key],
    ]).sort_index()
    removed = before - len(cleaned)
    if removed > 0:
        report["steps"].append(f"Removed {removed} duplicate students using keys: {dedup_cols}.")
    else:
        report["steps"].append("No duplicate students found.")

    missing_teacher = int(cleaned["teacher_name"].isna().sum())
    if missing_teacher > 0:
        report["warnings"].append(
            f"{missing_teacher} students have no teacher and will not appear on the leaderboard."
        )

    # ── 4. Teachers ────────────────────────────────────────────────
    teachers_df = _clean_teachers(teachers, cleaned, report)

    # ── 5. Unmatched teacher names ─────────────────────────────────
    known = set(teachers_df["name"])
    unmatched = sorted(
        {t for t in cleaned["teacher_name"].dropna().unique() if t not in known}
    )
    if unmatched:
        report["warnings"].append(
            f"{len(unmatched)} teacher names in the student list match no teacher: {unmatched}"
        )

    # ── Final summary ─────────────────────────────────────────────
    cleaned = cleaned.reset_index(drop=True)
    teachers_df = teachers_df.reset_index(drop=True)
    report["cleaned_students"] = len(cleaned)
    report["teacher_count"] = len(teachers_df)
    report["columns"] = list(cleaned.columns)

    return cleaned, teachers_df, report


def generate_cleaning_report(report: Dict) -> str:
    """Generate a human-readable cleaning report text."""
    lines = [
        "═══ Roster Cleaning Report ═══",
        f"Students: {report['original_students']} → {report['cleaned_students']}",
        f"Teachers: {report['teacher_count']}",
        "",
        "Steps performed:",
    ]
    for i, step in enumerate(report["steps"], 1):
        lines.append(f"  {i}. {step}")

    if report["warnings"]:
        lines.append("")
        lines.append("⚠ Warnings:")
        for w in report["warnings"]:
            lines.append(f"  • {w}")

    return "\n".join(lines)


# ── Helpers ─────────────────────────────────────────────────────────

def _trim_strings(df: pd.DataFrame) -> pd.DataFrame:
    for col in df.columns:
        if not (df[col].dtype == object or pd.api.types.is_string_dtype(df[col].dtype)):
            continue
        df[col] = df[col].map(lambda v: v.strip() if isinstance(v, str) else v)
    return df.replace({"nan": np.nan, "NaN": np.nan, "": np.nan, "None": np.nan})


def _clean_teachers(
    teachers: Optional[pd.DataFrame], students: pd.DataFrame, report: Dict
) -> pd.DataFrame:
    if teachers is None or teachers.empty or "name" not in teachers.columns:
        names = list(dict.fromkeys(students["teacher_name"].dropna().tolist()))
        report["steps"].append(
            f"No teacher list provided; derived {len(names)} teachers from the student list."
        )
        return pd.DataFrame({"name": names}, columns=["name"])

    cleaned = _trim_strings(teachers.copy())
    before = len(cleaned)
    cleaned = cleaned[cleaned["name"].notna()]
    cleaned = cleaned.drop_duplicates(subset=["name"], keep="first")
    dropped = before - len(cleaned)
    if dropped > 0:
        report["steps"].append(f"Dropped {dropped} empty or duplicate teacher rows.")
    return cleaned


_TURKISH_UPPER_I = str.maketrans({"İ": "i", "I": "ı"})
_ASCII_FOLD = str.maketrans({"ı": "i", "ş": "s", "ğ": "g", "ü": "u", "ö": "o", "ç": "c", "\u0307": None})


def fold_header(value: Any) -> str:
    """Case- and accent-insensitive header key: 'KAYIT YENİLEDİ' and 'kayit yeniledi' match."""
    text = " ".join(str(value).split())
    return text.translate(_TURKISH_UPPER_I).lower().translate(_ASCII_FOLD)


def find_column(df: pd.DataFrame, aliases: List[str]) -> Optional[str]:
    """Find the first column in df that matches any of the aliases."""
    cols_folded = {}
    for c in df.columns:
        cols_folded.setdefault(fold_header(c), c)
    for alias in aliases:
        key = fold_header(alias)
        if key in cols_folded:
            return cols_folded[key]
    return None

"""
Roster routes — upload the student/teacher roster, load the sample, inspect or clear it.
"""

import json
import logging
import uuid
from pathlib import Path

from fastapi import APIRouter, File, HTTPException, UploadFile

from core.cleaner import clean_roster
from core.parser import (
    SAMPLE_DATA_DIR,
    SUPPORTED_EXTENSIONS,
    parse_upload,
    split_roster,
    suggest_column_mapping,
    validate_roster,
)
from core.store import get_roster_source, get_store

logger = logging.getLogger(__name__)

router = APIRouter()

# Keep upload path stable regardless of process working directory.
UPLOAD_DIR = Path(__file__).resolve().parent.parent / "uploads"
UPLOAD_DIR.mkdir(exist_ok=True)

SAMPLE_ROSTER = SAMPLE_DATA_DIR / "sample_roster.csv"


def _df_records(df):
    """
    Convert DataFrame rows to JSON-safe records.
    Ensures NaN/NaT become null so FastAPI serialization won't raise 500.
    """
    return json.loads(df.to_json(orient="records", date_format="iso", force_ascii=False))


def _import_roster(file_path: str, filename: str) -> dict:
    """Parse, validate, clean and store a roster file. Raises ValueError on bad input."""
    sheets = parse_upload(file_path)
    first_sheet = next(iter(sheets.values()))
    students_df, teachers_df = split_roster(sheets)

    issues = validate_roster(students_df)
    critical = [i for i in issues if i["severity"] == "critical"]
    if critical:
        raise ValueError("; ".join(i["message"] for i in critical))

    cleaned_students, cleaned_teachers, report = clean_roster(students_df, teachers_df)
    get_store().save_roster(_df_records(cleaned_students), _df_records(cleaned_teachers))

    return {
        "filename": filename,
        "sheets": list(sheets.keys()),
        "suggested_mapping": suggest_column_mapping(first_sheet),
        "issues": issues,
        "cleaning_report": report,
        "student_count": len(cleaned_students),
        "teacher_count": len(cleaned_teachers),
        "preview": _df_records(cleaned_students.head(10)),
    }


@router.post("/file")
async def upload_file(file: UploadFile = File(...)):
    """
    Upload a CSV, Excel, or ODS roster.
    The roster replaces the stored one; returns the cleaning report and a preview.
    """
    ext = Path(file.filename or "").suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise HTTPException(400, f"Unsupported file type: {ext}. Use CSV, Excel, or ODS.")

    save_path = UPLOAD_DIR / f"{uuid.uuid4()}{ext}"
    try:
        with open(save_path, "wb") as f:
            while True:
                chunk = await file.read(1024 * 1024)
                if not chunk:
                    break
                f.write(chunk)
        return _import_roster(str(save_path), file.filename)
    except ValueError as e:
        raise HTTPException(400, f"Failed to process upload '{file.filename}': {e}")
    except Exception as e:
        logger.exception("Unexpected error while importing %s", file.filename)
        raise HTTPException(400, f"Failed to process upload '{file.filename}': {e}")
    finally:
        # Uploaded files are never kept once the roster is stored.
        save_path.unlink(missing_ok=True)


@router.get("/sample")
async def load_sample_data():
    """Load the bundled sample roster into the store."""
    if not SAMPLE_ROSTER.exists():
        raise HTTPException(404, f"Sample file not found on disk: {SAMPLE_ROSTER}")
    try:
        return _import_roster(str(SAMPLE_ROSTER), SAMPLE_ROSTER.name)
    except ValueError as e:
        raise HTTPException(400, f"Failed to load sample roster: {e}")


@router.get("")
async def get_roster():
    """Current raw roster as loaded by the dashboard, with any load error."""
    result = get_roster_source().load_data()
    return {
        "students": result.students,
        "teachers": result.teachers,
        "error": result.error,
    }


@router.delete("")
async def clear_roster():
    """Remove the stored roster."""
    get_store().clear()
    return {"status": "ok", "message": "Roster deleted."}

"""
Report routes — PDF and Excel exports of the current dashboard.
"""

import os
import uuid
from pathlib import Path

import pandas as pd
from fastapi import APIRouter
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from core.report_builder import generate_dashboard_pdf, generate_excel_export
from core.stats import compute_dashboard
from core.store import get_roster_source

router = APIRouter()

SCHOOL_NAME = os.getenv("SCHOOL_NAME", "Vildan Koleji Ortaokulu")
UPLOAD_DIR = Path(__file__).resolve().parent.parent / "uploads"
REPORTS_DIR = UPLOAD_DIR / "reports"
REPORTS_DIR.mkdir(parents=True, exist_ok=True)


def _safe_unlink(path: str):
    Path(path).unlink(missing_ok=True)


@router.get("/pdf")
async def dashboard_pdf():
    """Generate the renewal dashboard report PDF."""
    result = get_roster_source().load_data()
    dashboard = compute_dashboard(result.students, result.teachers)
    report_id = str(uuid.uuid4())[:8]
    output_path = REPORTS_DIR / f"renewal_report_{report_id}.pdf"

    generate_dashboard_pdf(
        output_path=str(output_path),
        school_name=SCHOOL_NAME,
        dashboard=dashboard,
    )

    return FileResponse(
        str(output_path),
        media_type="application/pdf",
        filename=f"Kayit_Takip_Raporu_{report_id}.pdf",
        background=BackgroundTask(_safe_unlink, str(output_path)),
    )


@router.get("/excel")
async def excel_export():
    """Export leaderboard, class breakdown and students as an Excel workbook."""
    result = get_roster_source().load_data()
    dashboard = compute_dashboard(result.students, result.teachers)
    report_id = str(uuid.uuid4())[:8]
    output_path = REPORTS_DIR / f"renewal_export_{report_id}.xlsx"

    generate_excel_export(
        output_path=str(output_path),
        students_df=pd.DataFrame(result.students),
        dashboard=dashboard,
        school_name=SCHOOL_NAME,
    )

    return FileResponse(
        str(output_path),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        filename=f"Kayit_Takip_{report_id}.xlsx",
        background=BackgroundTask(_safe_unlink, str(output_path)),
    )

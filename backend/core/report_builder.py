"""
report_builder.py — PDF and Excel exports of the renewal dashboard.

Generates:
- Dashboard PDF (cover, school-wide summary, teacher leaderboard, class pie charts)
- Excel Export  (leaderboard, class breakdown and the student list, colour-coded)

All PDFs are A4, print-ready with school name / date footer.
"""

import io
import math
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import matplotlib
matplotlib.use("Agg")  # Non-interactive backend for server use
import matplotlib.pyplot as plt
import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils.dataframe import dataframe_to_rows
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm, mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.platypus import (
    Image,
    PageBreak,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from core.cleaner import parse_renewed
from core.stats import percentage


# ── Colour palette ──────────────────────────────────────────────────

BRAND_DARK  = colors.HexColor("#1a1a2e")
BRAND_BURGUNDY = colors.HexColor("#800020")
LIGHT_GREY  = colors.HexColor("#f5f5f5")
WHITE       = colors.white

RENEWED_COLOR = "#2ecc71"
NOT_RENEWED_COLOR = "#e74c3c"

HIGH_MARK = 75
LOW_MARK = 50


# ── Fonts ───────────────────────────────────────────────────────────

def _register_fonts() -> Dict[str, str]:
    """Use matplotlib's bundled DejaVu fonts so Turkish letters render."""
    font_dir = Path(matplotlib.get_data_path()) / "fonts" / "ttf"
    regular = font_dir / "DejaVuSans.ttf"
    bold = font_dir / "DejaVuSans-Bold.ttf"
    if regular.exists() and bold.exists():
        if "DejaVuSans" not in pdfmetrics.getRegisteredFontNames():
            pdfmetrics.registerFont(TTFont("DejaVuSans", str(regular)))
            pdfmetrics.registerFont(TTFont("DejaVuSans-Bold", str(bold)))
        return {"regular": "DejaVuSans", "bold": "DejaVuSans-Bold"}
    return {"regular": "Helvetica", "bold": "Helvetica-Bold"}


# ── Helpers ─────────────────────────────────────────────────────────

def _footer(canvas, doc, school_name: str, fonts: Dict[str, str]):
    """Draw school name and date in the page footer."""
    canvas.saveState()
    canvas.setFont(fonts["regular"], 8)
    canvas.setFillColor(colors.grey)
    footer_text = f"{school_name} — {datetime.now().strftime('%d.%m.%Y %H:%M')}"
    canvas.drawString(2 * cm, 1.2 * cm, footer_text)
    canvas.drawRightString(A4[0] - 2 * cm, 1.2 * cm, f"Sayfa {doc.page}")
    canvas.restoreState()


def _chart_to_image(fig, width=14 * cm, height=8 * cm) -> Image:
    """Convert a matplotlib figure to a ReportLab Image."""
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=150, bbox_inches="tight")
    plt.close(fig)
    buf.seek(0)
    return Image(buf, width=width, height=height)


def _percentage_color(pct: Optional[float]):
    if pct is None:
        return None
    if pct >= HIGH_MARK:
        return colors.HexColor("#d5f5e3")
    if pct >= LOW_MARK:
        return colors.HexColor("#fef9e7")
    return colors.HexColor("#fadbd8")


# ── Charts ──────────────────────────────────────────────────────────

def _overall_donut_chart(overall: Dict[str, Any]) -> Optional[Image]:
    renewed = int(overall.get("renewed_student_count", 0) or 0)
    not_renewed = int(overall.get("not_renewed_student_count", 0) or 0)
    if renewed + not_renewed <= 0:
        return None
    fig, ax = plt.subplots(figsize=(4.5, 4.0))
    wedges = ax.pie(
        [renewed, not_renewed],
        colors=[RENEWED_COLOR, NOT_RENEWED_COLOR],
        startangle=90,
        wedgeprops={"width": 0.42},
    )[0]
    ax.text(0, 0, f"%{overall.get('overall_percentage', 0)}", ha="center", va="center",
            fontsize=18, fontweight="bold")
    ax.legend(wedges, [f"Yeniledi ({renewed})", f"Yenilemedi ({not_renewed})"],
              loc="lower center", bbox_to_anchor=(0.5, -0.08), ncol=2, fontsize=8)
    ax.set_title("Okul Geneli")
    fig.tight_layout()
    return _chart_to_image(fig, width=7 * cm, height=6.5 * cm)


def _class_pie_grid(classes: List[Dict[str, Any]]) -> Optional[Image]:
    """One pie per class level, laid out in a grid of up to 3 columns."""
    charts = [c for c in classes if (c.get("renewed", 0) + c.get("not_renewed", 0)) > 0]
    if not charts:
        return None
    ncols = min(3, len(charts))
    nrows = math.ceil(len(charts) / ncols)
    fig, axes = plt.subplots(nrows, ncols, figsize=(3.2 * ncols, 3.2 * nrows), squeeze=False)
    for ax in axes.flat:
        ax.axis("off")
    for ax, cls in zip(axes.flat, charts):
        vals = [cls.get("renewed", 0), cls.get("not_renewed", 0)]
        ax.pie(vals, colors=[RENEWED_COLOR, NOT_RENEWED_COLOR], startangle=90,
               autopct=lambda p: f"{p:.0f}%" if p > 0 else "", textprops={"fontsize": 8})
        ax.set_title(str(cls.get("name", "?")), fontsize=10)
        ax.axis("equal")
    fig.tight_layout()
    width = 5.3 * cm * ncols
    return _chart_to_image(fig, width=width, height=width * nrows / ncols)


# ── PDF Helpers ─────────────────────────────────────────────────────

def _styles(fonts: Dict[str, str]):
    """Return custom paragraph styles."""
    ss = getSampleStyleSheet()
    return {
        "title": ParagraphStyle(
            "CustomTitle", parent=ss["Title"], fontName=fonts["bold"],
            fontSize=26, leading=32, textColor=BRAND_DARK,
            spaceAfter=6 * mm,
        ),
        "subtitle": ParagraphStyle(
            "CustomSubtitle", parent=ss["Normal"], fontName=fonts["regular"],
            fontSize=14, leading=18, textColor=BRAND_BURGUNDY,
            spaceAfter=4 * mm,
        ),
        "heading": ParagraphStyle(
            "CustomHeading", parent=ss["Heading2"], fontName=fonts["bold"],
            fontSize=14, leading=18, textColor=BRAND_DARK,
            spaceBefore=8 * mm, spaceAfter=4 * mm,
        ),
        "body": ParagraphStyle(
            "CustomBody", parent=ss["Normal"], fontName=fonts["regular"],
            fontSize=10, leading=14, textColor=colors.black,
            spaceAfter=3 * mm,
        ),
        "center": ParagraphStyle(
            "CenterBody", parent=ss["Normal"], fontName=fonts["regular"],
            fontSize=10, leading=14, alignment=TA_CENTER,
        ),
    }


def _make_table(data: List[List], fonts: Dict[str, str], col_widths=None,
                pct_col_idx: Optional[int] = None):
    """Styled table; rows are colour-coded when pct_col_idx is given."""
    style_cmds = [
        ("BACKGROUND", (0, 0), (-1, 0), BRAND_DARK),
        ("TEXTCOLOR", (0, 0), (-1, 0), WHITE),
        ("FONTNAME", (0, 0), (-1, 0), fonts["bold"]),
        ("FONTNAME", (0, 1), (-1, -1), fonts["regular"]),
        ("FONTSIZE", (0, 0), (-1, 0), 9),
        ("FONTSIZE", (0, 1), (-1, -1), 8),
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#cccccc")),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [WHITE, LIGHT_GREY]),
        ("TOPPADDING", (0, 0), (-1, -1), 4),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ]
    if pct_col_idx is not None:
        for row_idx in range(1, len(data)):
            try:
                pct = float(str(data[row_idx][pct_col_idx]).lstrip("%"))
            except (ValueError, TypeError, IndexError):
                continue
            style_cmds.append(("BACKGROUND", (0, row_idx), (-1, row_idx), _percentage_color(pct)))

    t = Table(data, colWidths=col_widths, repeatRows=1)
    t.setStyle(TableStyle(style_cmds))
    return t


# ═══════════════════════════════════════════════════════════════════
# 1. DASHBOARD PDF
# ═══════════════════════════════════════════════════════════════════

def generate_dashboard_pdf(
    output_path: str,
    school_name: str,
    dashboard: Dict[str, Any],
):
    """Generate the renewal dashboard report PDF."""
    fonts = _register_fonts()
    st = _styles(fonts)
    story = []

    overall = dashboard.get("overall", {})
    teachers = dashboard.get("teachers", [])
    classes = dashboard.get("classes", [])

    # ── Page 1: Cover + school-wide summary ────────────────────────
    story.append(Spacer(1, 3 * cm))
    story.append(Paragraph(school_name, st["title"]))
    story.append(Paragraph("Kayıt Yenileme Raporu", st["subtitle"]))
    story.append(Paragraph(datetime.now().strftime("%d.%m.%Y"), st["body"]))

    story.append(Paragraph("1) Okul Geneli Kayıt Yenileme Durumu", st["heading"]))
    summary = [
        ["Gösterge", "Değer"],
        ["Toplam Öğrenci", str(overall.get("total_student_count", 0))],
        ["Kaydını Yenileyen", str(overall.get("renewed_student_count", 0))],
        ["Kaydını Yenilemeyen", str(overall.get("not_renewed_student_count", 0))],
        ["Yenileme Oranı", f"%{overall.get('overall_percentage', 0)}"],
    ]
    story.append(_make_table(summary, fonts, col_widths=[7.5 * cm, 6.5 * cm]))
    story.append(Spacer(1, 5 * mm))

    donut = _overall_donut_chart(overall)
    if donut:
        story.append(donut)
    else:
        story.append(Paragraph("Henüz öğrenci verisi yüklenmedi.", st["center"]))
    story.append(PageBreak())

    # ── Page 2: Teacher leaderboard ────────────────────────────────
    story.append(Paragraph("2) Öğretmenler Kayıt Takip", st["heading"]))
    if teachers:
        board = [["Sıra", "Öğretmen", "Öğrenci", "Yenileme %"]]
        for rank, t in enumerate(teachers, 1):
            board.append([
                str(rank),
                str(t.get("name", "?")),
                str(t.get("student_count", 0)),
                f"%{t.get('renewal_percentage', 0)}",
            ])
        story.append(_make_table(board, fonts, col_widths=[1.5 * cm, 8 * cm, 2.5 * cm, 3 * cm],
                                 pct_col_idx=3))
    else:
        story.append(Paragraph("Liderlik tablosu için öğretmen verisi bulunamadı.", st["body"]))

    # ── Page 3: Class breakdown ────────────────────────────────────
    if classes:
        story.append(PageBreak())
        story.append(Paragraph("3) Sınıf Bazlı Yenileme Dağılımı", st["heading"]))
        pies = _class_pie_grid(classes)
        if pies:
            story.append(pies)
            story.append(Spacer(1, 5 * mm))
        class_table = [["Sınıf", "Yeniledi", "Yenilemedi", "Yenileme %"]]
        for c in classes:
            total = c.get("renewed", 0) + c.get("not_renewed", 0)
            pct = percentage(c.get("renewed", 0), total)
            class_table.append([
                str(c.get("name", "?")),
                str(c.get("renewed", 0)),
                str(c.get("not_renewed", 0)),
                f"%{pct}",
            ])
        story.append(_make_table(class_table, fonts, pct_col_idx=3))

    # ── Build PDF ───────────────────────────────────────────────────
    doc = SimpleDocTemplate(
        output_path,
        pagesize=A4,
        leftMargin=2 * cm,
        rightMargin=2 * cm,
        topMargin=2 * cm,
        bottomMargin=2.5 * cm,
    )
    doc.build(
        story,
        onFirstPage=lambda c, d: _footer(c, d, school_name, fonts),
        onLaterPages=lambda c, d: _footer(c, d, school_name, fonts),
    )


# ═══════════════════════════════════════════════════════════════════
# 2. EXCEL EXPORT
# ═══════════════════════════════════════════════════════════════════

def generate_excel_export(
    output_path: str,
    students_df: pd.DataFrame,
    dashboard: Dict[str, Any],
    school_name: str,
):
    """Export the leaderboard, class breakdown and student list as an Excel workbook."""
    header_font = Font(bold=True, color="FFFFFF", size=11)
    header_fill = PatternFill(start_color="1a1a2e", end_color="1a1a2e", fill_type="solid")
    red_fill = PatternFill(start_color="fadbd8", end_color="fadbd8", fill_type="solid")
    green_fill = PatternFill(start_color="d5f5e3", end_color="d5f5e3", fill_type="solid")
    yellow_fill = PatternFill(start_color="fef9e7", end_color="fef9e7", fill_type="solid")
    thin_border = Border(
        left=Side(style="thin"), right=Side(style="thin"),
        top=Side(style="thin"), bottom=Side(style="thin"),
    )

    def _style_sheet(ws, pct_col_idx: Optional[int] = None):
        """Apply formatting to a worksheet."""
        for cell in ws[1]:
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = Alignment(horizontal="center")
            cell.border = thin_border

        for row in ws.iter_rows(min_row=2, max_row=ws.max_row):
            for cell in row:
                cell.border = thin_border
                cell.alignment = Alignment(horizontal="center")

            if pct_col_idx and row[pct_col_idx - 1].value is not None:
                try:
                    val = float(row[pct_col_idx - 1].value)
                except (ValueError, TypeError):
                    continue
                fill = green_fill if val >= HIGH_MARK else (yellow_fill if val >= LOW_MARK else red_fill)
                for cell in row:
                    cell.fill = fill

        ws.freeze_panes = "A2"

        # Auto-width columns
        for col_cells in ws.columns:
            max_len = max(len(str(cell.value or "")) for cell in col_cells)
            ws.column_dimensions[col_cells[0].column_letter].width = min(max_len + 4, 40)

    wb = Workbook()
    wb.properties.title = f"{school_name} Kayıt Takip"

    # ── Sheet 1: Teacher leaderboard ────────────────────────────────
    ws_teachers = wb.active
    ws_teachers.title = "Öğretmenler"
    ws_teachers.sheet_properties.tabColor = "1a1a2e"
    ws_teachers.append(["Sıra", "Öğretmen", "Öğrenci Sayısı", "Yenileme %"])
    for rank, t in enumerate(dashboard.get("teachers", []), 1):
        ws_teachers.append([rank, t.get("name"), t.get("student_count", 0), t.get("renewal_percentage", 0)])
    _style_sheet(ws_teachers, pct_col_idx=4)

    # ── Sheet 2: Class breakdown ────────────────────────────────────
    ws_classes = wb.create_sheet(title="Sınıflar")
    ws_classes.sheet_properties.tabColor = "800020"
    ws_classes.append(["Sınıf", "Yeniledi", "Yenilemedi"])
    for c in dashboard.get("classes", []):
        ws_classes.append([c.get("name"), c.get("renewed", 0), c.get("not_renewed", 0)])
    overall = dashboard.get("overall", {})
    ws_classes.append([
        "Toplam",
        overall.get("renewed_student_count", 0),
        overall.get("not_renewed_student_count", 0),
    ])
    _style_sheet(ws_classes)

    # ── Sheet 3: Students ───────────────────────────────────────────
    ws_students = wb.create_sheet(title="Öğrenciler")
    ws_students.sheet_properties.tabColor = "2ecc71"
    export_df = students_df.copy()
    if "renewed" in export_df.columns:
        export_df["renewed"] = export_df["renewed"].map(lambda v: "Evet" if parse_renewed(v) else "Hayır")
    export_df = export_df.astype(object).where(export_df.notna(), None)
    for row in dataframe_to_rows(export_df, index=False, header=True):
        ws_students.append(row)
    _style_sheet(ws_students)

    wb.save(output_path)

import io
from xml.sax.saxutils import escape
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.pdfgen import canvas as _rl_canvas
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from taskhub.core.exceptions import UpstreamError, ValidationError
from taskhub.models.task import Task
import logging

logger = logging.getLogger("TaskHub.Export")

EXPORT_COLUMNS = ["Title", "Description", "Category", "Status", "Priority", "Due Date", "Created At"]

EXPORT_FORMATS = {
    # format: (media type, file name)
    "csv": ("text/csv", "tasks.csv"),
    "excel": ("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", "tasks.xlsx"),
    "pdf": ("application/pdf", "tasks.pdf"),
}


@dataclass
class ExportResult:
    content: bytes
    media_type: str
    filename: str


def _iso(value: Optional[datetime]) -> str:
    return value.isoformat() if value else ""


def tasks_to_dataframe(tasks: Iterable[Task]) -> pd.DataFrame:
    rows = [
        [
            t.title,
            t.description or "",
            t.category,
            t.status,
            t.priority,
            _iso(t.due_date),
            _iso(t.created_at),
        ]
        for t in tasks
    ]
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def _to_csv(df: pd.DataFrame) -> bytes:
    return df.to_csv(index=False).encode("utf-8")


def _to_excel(df: pd.DataFrame) -> bytes:
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="Tasks")
    return buf.getvalue()


# ---------- ReportLab helpers ----------
def _page_number(canv: _rl_canvas.Canvas, doc):
    canv.setFont("Helvetica", 8)
    canv.setFillColor(colors.HexColor("#64748b"))
    canv.drawRightString(doc.pagesize[0] - 36, 18, f"Page {canv.getPageNumber()}")


def _to_pdf(df: pd.DataFrame, owner_name: Optional[str] = None) -> bytes:
    buf = io.BytesIO()
    doc = SimpleDocTemplate(buf, pagesize=landscape(A4), topMargin=36, bottomMargin=36, leftMargin=36, rightMargin=36)

    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(name="H1", fontSize=18, leading=22, spaceAfter=12, alignment=1))
    styles.add(ParagraphStyle(name="Muted", fontSize=9, textColor=colors.HexColor("#6b7280"), alignment=1))
    cell = ParagraphStyle(name="Cell", fontSize=8, leading=10)

    story = [Paragraph("Task List", styles["H1"])]
    if owner_name:
        story.append(Paragraph(escape(owner_name), styles["Muted"]))
    story.append(Spacer(1, 12))

    data: List[list] = [EXPORT_COLUMNS]
    for row in df.itertuples(index=False):
        data.append([Paragraph(escape(str(value)).replace("\n", "<br/>"), cell) for value in row])

    table = Table(data, repeatRows=1, colWidths=[120, 200, 70, 60, 55, 110, 110])
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#f1f5f9")),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, 0), 9),
        ("GRID", (0, 0), (-1, -1), 0.3, colors.HexColor("#cbd5e1")),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f8fafc")]),
    ]))
    story.append(table)

    doc.build(story, onFirstPage=_page_number, onLaterPages=_page_number)
    return buf.getvalue()


def export_tasks(tasks: Iterable[Task], fmt: str, owner_name: Optional[str] = None) -> ExportResult:
    """
    Рендерит список задач в CSV / Excel / PDF и возвращает байты.
    """
    fmt = (fmt or "").lower()
    if fmt not in EXPORT_FORMATS:
        raise ValidationError.from_errors(
            [{"field": "format", "message": f"Format must be one of: {', '.join(EXPORT_FORMATS)}"}]
        )
    media_type, filename = EXPORT_FORMATS[fmt]
    df = tasks_to_dataframe(tasks)
    try:
        if fmt == "csv":
            content = _to_csv(df)
        elif fmt == "excel":
            content = _to_excel(df)
        else:
            content = _to_pdf(df, owner_name)
    except Exception as e:
        logger.error(f"Failed to export {len(df)} tasks to {fmt}: {e}", exc_info=True)
        raise UpstreamError(f"Failed to export tasks to {fmt}: {e}") from e
    logger.info(f"Exported {len(df)} tasks to {fmt} ({len(content)} bytes)")
    return ExportResult(content=content, media_type=media_type, filename=filename)

import io
from typing import Any, Dict, List
from xml.sax.saxutils import escape

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

EXCEL_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_MEDIA_TYPE = "application/pdf"


def _rows(batch: Dict[str, Any]) -> List[Dict[str, Any]]:
    total = batch["meta"].get("total_marks")
    return [
        {
            "Student": entry.get("name"),
            "Email": entry.get("email"),
            "Marks": entry.get("marks"),
            "Total": total,
            "Remarks": entry.get("remarks") or "",
        }
        for entry in batch["entries"]
    ]


def generate_batch_excel(batch: Dict[str, Any], course: Dict[str, Any]) -> bytes:
    buffer = io.BytesIO()
    meta = batch["meta"]
    summary_df = pd.DataFrame([
        {
            "Course": f"{course.get('code')} - {course.get('name')}",
            "Title": meta.get("title"),
            "Type": meta.get("type"),
            "Date": meta.get("date"),
            "Total Marks": meta.get("total_marks"),
            "Students": batch["count"],
        }
    ])
    marks_df = pd.DataFrame(_rows(batch), columns=["Student", "Email", "Marks", "Total", "Remarks"])
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        summary_df.to_excel(writer, sheet_name="Summary", index=False)
        marks_df.to_excel(writer, sheet_name="Marks", index=False)
    buffer.seek(0)
    return buffer.getvalue()


def generate_batch_pdf(batch: Dict[str, Any], course: Dict[str, Any]) -> bytes:
    buffer = io.BytesIO()
    styles = getSampleStyleSheet()
    meta = batch["meta"]
    doc = SimpleDocTemplate(buffer, pagesize=A4)
    elements = [
        Paragraph(escape(f"{meta.get('title')} ({meta.get('type')})"), styles["Title"]),
        Paragraph(escape(f"{course.get('code')} - {course.get('name')} | {meta.get('date') or '-'}"), styles["Normal"]),
        Spacer(1, 12),
    ]
    table_data = [["Student", "Email", "Marks", "Total", "Remarks"]]
    for row in _rows(batch):
        table_data.append([row["Student"] or "-", row["Email"] or "-", row["Marks"], row["Total"], row["Remarks"]])
    table = Table(table_data, hAlign="LEFT", colWidths=[120, 150, 50, 50, 130])
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
    ]))
    elements.append(table)
    doc.build(elements)
    pdf_value = buffer.getvalue()
    buffer.close()
    return pdf_value

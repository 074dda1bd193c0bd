# app/utils/pdf_generators/sla_report_pdf.py
from io import BytesIO
from datetime import datetime

from reportlab.lib.pagesizes import A4
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle
from reportlab.lib import colors
from reportlab.lib.styles import getSampleStyleSheet


def _table(data, col_widths) -> Table:
    table = Table(data, colWidths=col_widths)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.black),
        ("ALIGN", (1, 1), (-1, -1), "CENTER"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("FONTSIZE", (0, 0), (-1, -1), 10),
    ]))
    return table


def generate_sla_report_pdf(overview: dict, sla: dict, generated_at: datetime) -> bytes:
    """
    Render the overview and SLA rollups as a PDF document.
    Takes the dicts produced by the report service; does no querying itself.
    """
    buffer = BytesIO()
    styles = getSampleStyleSheet()
    story = []

    # -----------------------------
    # HEADER
    # -----------------------------
    story.append(Paragraph("<b>COMPLAINT SLA REPORT</b>", styles["Title"]))
    story.append(Spacer(1, 8))
    story.append(Paragraph(f"Generated: {generated_at.strftime('%d-%m-%Y %H:%M')} UTC", styles["Normal"]))
    story.append(Spacer(1, 15))

    # -----------------------------
    # OVERVIEW
    # -----------------------------
    totals = overview["overview"]
    performance = overview["performance"]

    story.append(Paragraph("<b>Overview:</b>", styles["Heading3"]))
    story.append(Paragraph(f"Total complaints: {totals['total_complaints']}", styles["Normal"]))
    story.append(Paragraph(f"Active: {totals['active_complaints']}", styles["Normal"]))
    story.append(Paragraph(f"Resolved: {totals['resolved_complaints']}", styles["Normal"]))
    story.append(Paragraph(f"Overdue: {totals['overdue_complaints']}", styles["Normal"]))
    story.append(Paragraph(f"Escalated: {totals['escalated_complaints']}", styles["Normal"]))
    story.append(Paragraph(f"Average resolution time: {totals['avg_resolution_hours']} h", styles["Normal"]))
    story.append(Paragraph(f"Resolution rate: {performance['resolution_rate']}%", styles["Normal"]))
    story.append(Paragraph(f"Escalation rate: {performance['escalation_rate']}%", styles["Normal"]))
    story.append(Spacer(1, 15))

    # -----------------------------
    # SLA BY PRIORITY
    # -----------------------------
    story.append(Paragraph("<b>SLA by Priority:</b>", styles["Heading3"]))
    data = [["Priority", "Total", "Overdue", "On Time", "Compliance", "Avg Hours"]]

    for row in sla["by_priority"]:
        data.append([
            row["priority"].upper(),
            str(row["total_complaints"]),
            str(row["overdue_count"]),
            str(row["resolved_on_time_count"]),
            f"{row['sla_compliance']:.2f}%",
            f"{row['avg_time_to_resolution']:.2f}",
        ])

    story.append(_table(data, [90, 60, 70, 70, 90, 80]))
    story.append(Spacer(1, 20))

    overall = sla["overall"]
    story.append(Paragraph(f"<b>Overall compliance: {overall['compliance']:.2f}%</b>", styles["Heading2"]))
    story.append(Paragraph(
        f"{overall['total_resolved_on_time']} of {overall['total_complaints']} complaints resolved on time, "
        f"{overall['total_overdue']} currently overdue.",
        styles["Normal"],
    ))

    # -----------------------------
    # GENERATE PDF
    # -----------------------------
    doc = SimpleDocTemplate(buffer, pagesize=A4)
    doc.build(story)

    return buffer.getvalue()

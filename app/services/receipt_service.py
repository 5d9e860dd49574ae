"""
Submission receipt rendering.

``build_receipt_snapshot`` flattens an application (with applicant and job
loaded) into plain display values; ``PdfReceiptGenerator`` turns that
snapshot into a one-page PDF with reportlab. The snapshot is read-only input:
nothing here touches the database.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from io import BytesIO
from typing import Any
from xml.sax.saxutils import escape
import logging

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from app.core.config import settings

logger = logging.getLogger(__name__)


def _format_datetime(value: Any) -> str:
    if isinstance(value, datetime):
        return value.strftime("%d %b %Y, %H:%M %Z").strip()
    return str(value) if value else "-"


def build_receipt_snapshot(application) -> dict:
    """
    Collect the display fields printed on a receipt.

    Job fields come from the application's job snapshot so the receipt shows
    what the applicant applied to, even if the job was edited afterwards.
    """
    job = application.job_snapshot or {}
    user = application.user
    breakdown = application.credit_breakdown or {}
    sections = application.sections or {}

    return {
        "application_id": str(application.id),
        "application_number": application.application_number,
        "status": application.status,
        "submitted_at": application.submitted_at,
        "applicant_name": getattr(user, "full_name", None) or "-",
        "applicant_email": getattr(user, "email", None) or "-",
        "job_title": job.get("title") or "-",
        "advertisement_no": job.get("advertisement_no") or "-",
        "department": job.get("department") or "-",
        "sections": sorted(sections.keys()),
        "grand_total": breakdown.get("grand_total"),
    }


class ReceiptGenerator(ABC):

    @abstractmethod
    def generate_receipt(self, snapshot: dict) -> bytes:
        ...


class PdfReceiptGenerator(ReceiptGenerator):
    """A4 receipt: portal header, applicant, job, number, time, status, credits."""

    def _styles(self) -> dict:
        styles = getSampleStyleSheet()
        return {
            "title": ParagraphStyle(
                "ReceiptTitle",
                parent=styles["Heading1"],
                fontSize=16,
                spaceAfter=6,
            ),
            "subtitle": ParagraphStyle(
                "ReceiptSubtitle",
                parent=styles["Heading2"],
                fontSize=12,
                textColor=colors.HexColor("#444444"),
                spaceAfter=12,
            ),
            "body": ParagraphStyle(
                "ReceiptBody",
                parent=styles["Normal"],
                fontSize=10,
                leading=13,
            ),
        }

    def generate_receipt(self, snapshot: dict) -> bytes:
        styles = self._styles()
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=0.75 * inch,
            leftMargin=0.75 * inch,
            topMargin=0.75 * inch,
            bottomMargin=0.75 * inch,
            title=f"Receipt {snapshot.get('application_number') or ''}".strip(),
        )

        grand_total = snapshot.get("grand_total")
        rows = [
            ["Application Number", snapshot.get("application_number") or "-"],
            ["Applicant", snapshot.get("applicant_name") or "-"],
            ["Email", snapshot.get("applicant_email") or "-"],
            ["Position", snapshot.get("job_title") or "-"],
            ["Advertisement No.", snapshot.get("advertisement_no") or "-"],
            ["Department", snapshot.get("department") or "-"],
            ["Submitted At", _format_datetime(snapshot.get("submitted_at"))],
            ["Status", str(snapshot.get("status") or "-").replace("_", " ").title()],
            ["Credit Points", f"{grand_total:g}" if grand_total is not None else "-"],
        ]
        table = Table(rows, colWidths=[2.0 * inch, 4.5 * inch])
        table.setStyle(TableStyle([
            ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 10),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
            ("BACKGROUND", (0, 0), (0, -1), colors.HexColor("#f0f0f0")),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ]))

        story = [
            Paragraph(escape(settings.portal_name), styles["title"]),
            Paragraph("Application Receipt", styles["subtitle"]),
            table,
            Spacer(1, 0.3 * inch),
        ]
        sections = snapshot.get("sections") or []
        if sections:
            names = ", ".join(s.replace("_", " ").title() for s in sections)
            story.append(Paragraph(f"<b>Sections submitted:</b> {escape(names)}", styles["body"]))
            story.append(Spacer(1, 0.2 * inch))
        story.append(Paragraph(
            "This is a system generated receipt and does not require a signature.",
            styles["body"],
        ))

        doc.build(story)
        logger.debug(f"Rendered receipt for application {snapshot.get('application_id')}")
        return buffer.getvalue()


# Global instance
receipt_generator = PdfReceiptGenerator()

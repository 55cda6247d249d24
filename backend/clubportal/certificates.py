"""Certificate numbering and PDF rendering."""

import io
import logging
import uuid
from datetime import datetime
from typing import Optional

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer

logger = logging.getLogger(__name__)

ROMAN_YEARS = {1: "I", 2: "II", 3: "III", 4: "IV"}


def generate_certificate_number(issued_at: Optional[datetime] = None) -> str:
    stamp = (issued_at or datetime.utcnow()).strftime("%Y%m%d")
    return f"CERT-{stamp}-{uuid.uuid4().hex[:8].upper()}"


def participation_title(event_title: str) -> str:
    return f"Certificate of Participation - {event_title}"


def roman_year(year: Optional[str]) -> str:
    """Render a study year ("2", "2nd", "II") as a roman numeral where possible."""
    if not year:
        return ""
    digits = "".join(ch for ch in year if ch.isdigit())
    if digits:
        number = int(digits)
        return ROMAN_YEARS.get(number, str(number))
    return year.strip()


def render_certificate_pdf(
    student_name: str,
    event_title: str,
    club_name: str,
    certificate_number: str,
    event_date: Optional[datetime] = None,
    branch: Optional[str] = None,
    year: Optional[str] = None,
) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        rightMargin=2 * cm,
        leftMargin=2 * cm,
        topMargin=2 * cm,
        bottomMargin=2 * cm,
        title=participation_title(event_title),
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "CertTitle",
        parent=styles["Heading1"],
        fontSize=30,
        textColor=colors.HexColor("#1a365d"),
        alignment=TA_CENTER,
        spaceAfter=20,
    )
    body_style = ParagraphStyle(
        "CertBody",
        parent=styles["Normal"],
        fontSize=14,
        textColor=colors.HexColor("#4a5568"),
        alignment=TA_CENTER,
        spaceAfter=10,
    )
    name_style = ParagraphStyle(
        "StudentName",
        parent=styles["Heading1"],
        fontSize=26,
        textColor=colors.HexColor("#2d3748"),
        alignment=TA_CENTER,
        spaceBefore=6,
        spaceAfter=6,
    )
    event_style = ParagraphStyle(
        "EventTitle",
        parent=styles["Heading2"],
        fontSize=20,
        textColor=colors.HexColor("#3182ce"),
        alignment=TA_CENTER,
        spaceBefore=6,
        spaceAfter=12,
    )
    small_style = ParagraphStyle(
        "CertSmall",
        parent=styles["Normal"],
        fontSize=10,
        textColor=colors.HexColor("#718096"),
        alignment=TA_CENTER,
    )

    content = [
        Paragraph("CERTIFICATE OF PARTICIPATION", title_style),
        Paragraph("This is to certify that", body_style),
        Paragraph(_escape(student_name), name_style),
    ]
    study = []
    if year:
        study.append(f"B.Tech {roman_year(year)} Year")
    if branch:
        study.append(branch)
    if study:
        content.append(Paragraph(_escape(" - ".join(study)), body_style))
    content.append(Paragraph("has successfully participated in", body_style))
    content.append(Paragraph(_escape(event_title), event_style))
    held = f"organised by {_escape(club_name)}"
    if event_date:
        held += f" on {event_date.strftime('%d %B %Y')}"
    content.append(Paragraph(held, body_style))
    content.append(Spacer(1, 1.5 * cm))
    content.append(Paragraph(f"Certificate No. {certificate_number}", small_style))

    doc.build(content)
    logger.debug("rendered certificate %s for %s", certificate_number, student_name)
    return buffer.getvalue()


def _escape(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")

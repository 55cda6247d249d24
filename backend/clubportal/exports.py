import csv
import io
import re
from datetime import datetime
from typing import Iterable, Sequence

from fastapi.responses import Response

from .models import Certificate, EventAttendance, EventRegistration

REGISTRATION_HEADERS = ["Name", "Email", "Roll Number", "Branch", "Year", "Registration Date"]
ATTENDANCE_HEADERS = ["S.No", "Student Name", "Roll Number", "Email", "Status", "Scan Time"]
CERTIFICATE_HEADERS = [
    "Certificate Number",
    "Title",
    "Student Name",
    "Roll Number",
    "Email",
    "Event",
    "Issued At",
]


def safe_filename(title: str, suffix: str) -> str:
    return f"{re.sub(r'[^a-z0-9]', '_', title, flags=re.IGNORECASE)}_{suffix}.csv"


def _fmt(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else ""


def to_csv(headers: Sequence[str], rows: Iterable[Sequence[object]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow(["" if cell is None else cell for cell in row])
    return buffer.getvalue()


def registrations_csv(registrations: Iterable[EventRegistration]) -> str:
    return to_csv(
        REGISTRATION_HEADERS,
        (
            [r.student_name, r.student_email, r.roll_number, r.branch, r.year, _fmt(r.created_at)]
            for r in registrations
        ),
    )


def attendance_csv(records: Iterable[EventAttendance]) -> str:
    present = [r for r in records if r.is_present]
    return to_csv(
        ATTENDANCE_HEADERS,
        (
            [index, r.student_name, r.roll_number, r.student_email, "Present", _fmt(r.scanned_at)]
            for index, r in enumerate(present, start=1)
        ),
    )


def certificates_csv(certificates: Iterable[Certificate], event_titles: dict[int, str]) -> str:
    return to_csv(
        CERTIFICATE_HEADERS,
        (
            [
                c.certificate_number,
                c.certificate_title,
                c.student_name,
                c.roll_number,
                c.student_email,
                event_titles.get(c.event_id, "") if c.event_id else "",
                _fmt(c.issued_at),
            ]
            for c in certificates
        ),
    )


def csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

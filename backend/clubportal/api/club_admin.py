import logging
from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session, selectinload

from .. import config
from ..certificates import generate_certificate_number, participation_title
from ..deps import get_admin_club, get_db, get_owned
from ..exports import (
    attendance_csv,
    certificates_csv,
    csv_response,
    registrations_csv,
    safe_filename,
)
from ..mailer import Mailer, get_mailer
from ..models import (
    Announcement,
    Certificate,
    CertificateRequest,
    Club,
    ClubMember,
    ClubRegistration,
    ClubReport,
    Event,
    EventAttendance,
    EventImage,
    EventRegistration,
)
from ..notifications import (
    send_announcement_email,
    send_certificate_emails,
    send_event_update_email,
    send_new_event_email,
    send_welcome_email,
)
from ..schemas import (
    SOCIAL_LINK_PATTERNS,
    AnnouncementCreate,
    AnnouncementOut,
    AttendanceOut,
    AttendanceScanRequest,
    CertificateOut,
    CertificateRequestOut,
    ClubMemberCreate,
    ClubMemberOut,
    ClubOut,
    ClubRegistrationOut,
    ClubReportCreate,
    ClubReportOut,
    ClubUpdate,
    EventCreate,
    EventImageCreate,
    EventImageOut,
    EventNotifyRequest,
    EventOut,
    EventRegistrationOut,
    EventUpdate,
    IssueCertificatesOut,
    MessageOut,
    RegistrationDecisionOut,
    RegistrationStatusUpdate,
)
from ..services import (
    active_member_recipients,
    event_registrant_recipients,
    event_titles,
    mentor_recipients,
    provision_student_account,
    serialize_certificate,
    serialize_certificate_request,
    serialize_event,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/club-admin")


# ---------------------------------------------------------------------------
# Club info


@router.get("/club", response_model=ClubOut)
def get_my_club(club: Club = Depends(get_admin_club)):
    return ClubOut.model_validate(club, from_attributes=True)


@router.patch("/club", response_model=ClubOut)
def update_my_club(
    payload: ClubUpdate,
    db: Session = Depends(get_db),
    club: Club = Depends(get_admin_club),
):
    data = payload.model_dump(exclude_unset=True)
    if data.get("name") and data["name"] != club.name:
        taken = db.execute(
            select(Club.id).where(func.lower(Club.name) == data["name"].lower(), Club.id != club.id)
        ).first()
        if taken:
            raise HTTPException(status_code=409, detail="A club with this name already exists")
    for field, value in data.items():
        if value is None and field in ("name", "registration_open"):
            continue
        if field in SOCIAL_LINK_PATTERNS and value == "":
            value = None
        setattr(club, field, value)
    club.updated_at = datetime.utcnow()
    db.flush()
    db.refresh(club)
    return ClubOut.model_validate(club, from_attributes=True)


# ---------------------------------------------------------------------------
# Announcements


@router.get("/announcements", response_model=list[AnnouncementOut])
def list_announcements(db: Session = Depends(get_db), club: Club = Depends(get_admin_club)):
    announcements = (
        db.execute(
            select(Announcement)
            .where(Announcement.club_id == club.id)
            .order_by(Announcement.created_at.desc(), Announcement.id.desc())
        )
        .scalars()
        .all()
    )
    return [AnnouncementOut.model_validate(a, from_attributes=True) for a in announcements]


@router.post("/announcements", response_model=AnnouncementOut)
def create_announcement(
    payload: AnnouncementCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    club: Club = Depends(get_admin_club),
    mailer: Mailer = Depends(get_mailer),
):
    announcement = Announcement(club_id=club.id, title=payload.title, content=payload.content)
    db.add(announcement)
    db.flush()
    db.refresh(announcement)
    recipients = active_member_recipients(db, club.id)
    if recipients:
        background_tasks.add_task(
            send_announcement_email, mailer, club.name, announcement.title, announcement.content, recipients
        )
    return AnnouncementOut.model_validate(announcement, from_attributes=True)


@router.delete("/announcements/{announcement_id}", response_model=MessageOut)
def delete_announcement(
    announcement_id: int,
    db: Session = Depends(get_db),
    club: Club = Depends(get_admin_club),
):
    db.delete(get_owned(db, Announcement, announcement_id, club.id, "Announcement"))
    return MessageOut(message="Announcement deleted")


# ---------------------------------------------------------------------------
# Roster


@router.get("/members", response_model=list[ClubMemberOut])
def list_members(db: Session = Depends(get_db), club: Club = Depends(get_admin_club)):
    members = (
        db.execute(
            select(ClubMember)
            .where(ClubMember.club_id == club.id)
            .order_by(ClubMember.created_at.asc(), ClubMember.id.asc())
        )
        .scalars()
        .all()
    )
    return [ClubMemberOut.model_validate(m, from_attributes=True) for m in members]


@router.post("/members", response_model=ClubMemberOut)
def add_member(
    payload: ClubMemberCreate,
    db: Session = Depends(get_db),
    club: Club = Depends(get_admin_club),
):
    member = ClubMember(club_id=club.id, name=payload.name, role=payload.role)
    db.add(member)
    db.flush()
    db.refresh(member)
    return ClubMemberOut.model_validate(member, from_attributes=True)


@router.delete("/members/{member_id}", response_model=MessageOut)
def remove_member(
    member_id: int,
    db: Session = Depends(get_db),
    club: Club = Depends(get_admin_club),
):
    db.delete(get_owned(db, ClubMember, member_id, club.id, "Member"))
    return MessageOut(message="Member removed")


# ---------------------------------------------------------------------------
# Events


@router.get("/events", response_model=list[EventOut])
def list_events(db: Session = Depends(get_db), club: Club = Depends(get_admin_club)):
    events = (
        db.execute(
            select(Event)
            .options(selectinload(Event.images))
            .where(Event.club_id == club.id)
            .order_by(Event.created_at.desc(), Event.id.desc())
        )
        .scalars()
        .all()
    )
    return [serialize_event(event) for event in events]


@router.post("/events", response_model=EventOut)
def create_event(
    payload: EventCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    club: Club = Depends(get_admin_club),
    mailer: Mailer = Depends(get_mailer),
):
    event = Event(club_id=club.id, **payload.model_dump())
    db.add(event)
    db.flush()
    db.refresh(event)

    recipients = dict(active_member_recipients(db, club.id))
    for email, name in mentor_recipients(db):
        recipients.setdefault(email, name)
    if recipients:
        background_tasks.add_task(
            send_new_event_email,
            mailer,
            club.name,
            event.title,
            event.description,
            event.event_date,
            event.venue,
            list(recipients.items()),
        )
    return serialize_event(event)


@router.patch("/events/{event_id}", response_model=EventOut)
def update_event(
    event_id: int,
    payload: EventUpdate,
    db: Session = Depends(get_db),
    club: Club = Depends(get_admin_club),
):
    event = get_owned(db, Event, event_id, club.id, "Event")
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in ("title", "registration_open"):
            continue
        if field == "description" and value is None:
            value = ""
        setattr(event, field, value)
    db.flush()
    db.refresh(event)
    return serialize_event(event)


@router.delete("/events/{event_id}", response_model=MessageOut)
def delete_event(
    event_id: int,
    db: Session = Depends(get_db),
    club: Club = Depends(get_admin_club),
):
    event = get_owned(db, Event, event_id, club.id, "Event")
    db.execute(delete(EventAttendance).where(EventAttendance.event_id == event.id))
    db.execute(delete(EventRegistration).where(EventRegistration.event_id == event.id))
    db.execute(delete(CertificateRequest).where(CertificateRequest.event_id == event.id))
    db.execute(update(Certificate).where(Certificate.event_id == event.id).values(event_id=None))
    db.delete(event)
    return MessageOut(message="Event deleted")


@router.post("/events/{event_id}/images", response_model=EventImageOut)
def add_event_image(
    event_id: int,
    payload: EventImageCreate,
    db: Session = Depends(get_db),
    club: Club = Depends(get_admin_club),
):
    event = get_owned(db, Event, event_id, club.id, "Event")
    image = EventImage(event_id=event.id, image_url=payload.image_url)
    db.add(image)
    db.flush()
    db.refresh(image)
    return EventImageOut.model_validate(image, from_attributes=True)


@router.delete("/events/{event_id}/images/{image_id}", response_model=MessageOut)
def delete_event_image(
    event_id: int,
    image_id: int,
    db: Session = Depends(get_db),
    club: Club = Depends(get_admin_club),
):
    event = get_owned(db, Event, event_id, club.id, "Event")
    image = db.execute(
        select(EventImage).where(EventImage.id == image_id, EventImage.event_id == event.id)
    ).scalar_one_or_none()
    if not image:
        raise HTTPException(status_code=404, detail="Image not found")
    db.delete(image)
    return MessageOut(message="Image deleted")


@router.post("/events/{event_id}/notify")
def notify_event_registrants(
    event_id: int,
    payload: EventNotifyRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    club: Club = Depends(get_admin_club),
    mailer: Mailer = Depends(get_mailer),
):
    event = get_owned(db, Event, event_id, club.id, "Event")
    recipients = event_registrant_recipients(db, event.id)
    if recipients:
        background_tasks.add_task(
            send_event_update_email,
            mailer,
            club.name,
            event.title,
            payload.subject,
            payload.message,
            recipients,
        )
    return {"success": True, "recipients": len(recipients)}


# ---------------------------------------------------------------------------
# Event registrations & attendance


def _event_registrations(db: Session, event_id: int) -> list[EventRegistration]:
    return (
        db.execute(
            select(EventRegistration)
            .where(EventRegistration.event_id == event_id)
            .order_by(EventRegistration.created_at.asc(), EventRegistration.id.asc())
        )
        .scalars()
        .all()
    )


def _event_attendance(db: Session, event_id: int) -> list[EventAttendance]:
    return (
        db.execute(
            select(EventAttendance)
            .where(EventAttendance.event_id == event_id)
            .order_by(
                EventAttendance.is_present.desc(),
                EventAttendance.scanned_at.asc(),
                EventAttendance.student_name.asc(),
            )
        )
        .scalars()
        .all()
    )


@router.get("/events/{event_id}/registrations", response_model=list[EventRegistrationOut])
def list_event_registrations(
    event_id: int,
    db: Session = Depends(get_db),
    club: Club = Depends(get_admin_club),
):
    event = get_owned(db, Event, event_id, club.id, "Event")
    return [
        EventRegistrationOut.model_validate(r, from_attributes=True)
        for r in _event_registrations(db, event.id)
    ]


@router.get("/events/{event_id}/registrations.csv")
def export_event_registrations(
    event_id: int,
    db: Session = Depends(get_db),
    club: Club = Depends(get_admin_club),
):
    event = get_owned(db, Event, event_id, club.id, "Event")
    content = registrations_csv(_event_registrations(db, event.id))
    return csv_response(content, safe_filename(event.title, "registrations"))


@router.get("/events/{event_id}/attendance", response_model=list[AttendanceOut])
def list_event_attendance(
    event_id: int,
    db: Session = Depends(get_db),
    club: Club = Depends(get_admin_club),
):
    event = get_owned(db, Event, event_id, club.id, "Event")
    return [AttendanceOut.model_validate(a, from_attributes=True) for a in _event_attendance(db, event.id)]


@router.post("/events/{event_id}/attendance/scan", response_model=AttendanceOut)
def scan_attendance(
    event_id: int,
    payload: AttendanceScanRequest,
    db: Session = Depends(get_db),
    club: Club = Depends(get_admin_club),
):
    event = get_owned(db, Event, event_id, club.id, "Event")
    if payload.event_id != event.id:
        raise HTTPException(status_code=400, detail="This QR code is for a different event")
    record = db.execute(
        select(EventAttendance).where(
            EventAttendance.qr_token == payload.token.strip(),
            EventAttendance.event_id == event.id,
        )
    ).scalar_one_or_none()
    if not record:
        raise HTTPException(status_code=404, detail="Invalid QR code")
    if record.is_present:
        raise HTTPException(status_code=409, detail="Already scanned")
    record.is_present = True
    record.scanned_at = datetime.utcnow()
    db.flush()
    logger.info("attendance marked for %s at event %s", record.roll_number, event.id)
    return AttendanceOut.model_validate(record, from_attributes=True)


@router.get("/events/{event_id}/attendance.csv")
def export_event_attendance(
    event_id: int,
    db: Session = Depends(get_db),
    club: Club = Depends(get_admin_club),
):
    event = get_owned(db, Event, event_id, club.id, "Event")
    content = attendance_csv(_event_attendance(db, event.id))
    return csv_response(content, safe_filename(event.title, "attendance"))


# ---------------------------------------------------------------------------
# Certificates


@router.post("/events/{event_id}/certificate-request", response_model=CertificateRequestOut)
def request_certificate_permission(
    event_id: int,
    db: Session = Depends(get_db),
    club: Club = Depends(get_admin_club),
):
    event = get_owned(db, Event, event_id, club.id, "Event")
    if event.certificate_permission:
        raise HTTPException(status_code=409, detail="Certificate permission already granted")
    pending = db.execute(
        select(CertificateRequest).where(
            CertificateRequest.event_id == event.id,
            CertificateRequest.status == "pending",
        )
    ).scalar_one_or_none()
    if pending:
        raise HTTPException(status_code=409, detail="A certificate request is already pending for this event")
    request = CertificateRequest(event_id=event.id, club_id=club.id, status="pending")
    db.add(request)
    db.flush()
    db.refresh(request)
    return serialize_certificate_request(request, event, club)


@router.get("/certificate-requests", response_model=list[CertificateRequestOut])
def list_certificate_requests(db: Session = Depends(get_db), club: Club = Depends(get_admin_club)):
    rows = db.execute(
        select(CertificateRequest, Event)
        .join(Event, Event.id == CertificateRequest.event_id)
        .where(CertificateRequest.club_id == club.id)
        .order_by(CertificateRequest.requested_at.desc(), CertificateRequest.id.desc())
    ).all()
    return [serialize_certificate_request(request, event, club) for request, event in rows]


@router.post("/events/{event_id}/certificates", response_model=IssueCertificatesOut)
def issue_certificates(
    event_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    club: Club = Depends(get_admin_club),
    mailer: Mailer = Depends(get_mailer),
):
    event = get_owned(db, Event, event_id, club.id, "Event")
    if not event.certificate_permission:
        raise HTTPException(
            status_code=403,
            detail="Certificate permission has not been granted for this event",
        )

    attendees = db.execute(
        select(EventAttendance, EventRegistration)
        .outerjoin(EventRegistration, EventRegistration.id == EventAttendance.registration_id)
        .where(EventAttendance.event_id == event.id, EventAttendance.is_present.is_(True))
        .order_by(EventAttendance.scanned_at.asc())
    ).all()
    issued_rolls = set(
        db.execute(select(Certificate.roll_number).where(Certificate.event_id == event.id)).scalars().all()
    )

    issued: list[Certificate] = []
    recipients: list[dict] = []
    skipped = 0
    now = datetime.utcnow()
    for attendance, registration in attendees:
        roll_number = attendance.roll_number.upper()
        if roll_number in issued_rolls:
            skipped += 1
            continue
        issued_rolls.add(roll_number)
        cert = Certificate(
            club_id=club.id,
            event_id=event.id,
            certificate_number=generate_certificate_number(now),
            certificate_title=participation_title(event.title),
            description=f"Awarded for participating in {event.title} organised by {club.name}.",
            roll_number=roll_number,
            student_name=attendance.student_name,
            student_email=attendance.student_email,
            issued_at=now,
        )
        db.add(cert)
        issued.append(cert)
        recipients.append(
            {
                "student_name": cert.student_name,
                "student_email": cert.student_email,
                "certificate_number": cert.certificate_number,
                "branch": registration.branch if registration else None,
                "year": registration.year if registration else None,
            }
        )
    db.flush()

    if recipients:
        background_tasks.add_task(
            send_certificate_emails, mailer, club.name, event.title, event.event_date, recipients
        )
    logger.info("issued %d certificate(s) for event %s, skipped %d", len(issued), event.id, skipped)
    if issued:
        message = f"Issued {len(issued)} certificate(s)"
    elif attendees:
        message = "All present attendees already have certificates"
    else:
        message = "No present attendees to issue certificates to"
    return IssueCertificatesOut(
        issued=len(issued),
        skipped=skipped,
        message=message,
        certificates=[serialize_certificate(cert, event.title) for cert in issued],
    )


def _club_certificates(db: Session, club_id: int) -> list[Certificate]:
    return (
        db.execute(
            select(Certificate)
            .where(Certificate.club_id == club_id)
            .order_by(Certificate.issued_at.desc(), Certificate.id.desc())
        )
        .scalars()
        .all()
    )


@router.get("/certificates", response_model=list[CertificateOut])
def list_certificates(db: Session = Depends(get_db), club: Club = Depends(get_admin_club)):
    certificates = _club_certificates(db, club.id)
    titles = event_titles(db, (c.event_id for c in certificates))
    return [serialize_certificate(c, titles.get(c.event_id)) for c in certificates]


@router.get("/certificates.csv")
def export_certificates(db: Session = Depends(get_db), club: Club = Depends(get_admin_club)):
    certificates = _club_certificates(db, club.id)
    titles = event_titles(db, (c.event_id for c in certificates))
    return csv_response(certificates_csv(certificates, titles), safe_filename(club.name, "certificates"))


@router.delete("/certificates/{certificate_id}", response_model=MessageOut)
def delete_certificate(
    certificate_id: int,
    db: Session = Depends(get_db),
    club: Club = Depends(get_admin_club),
):
    db.delete(get_owned(db, Certificate, certificate_id, club.id, "Certificate"))
    return MessageOut(message="Certificate deleted")


# ---------------------------------------------------------------------------
# Club registrations


@router.get("/registrations", response_model=list[ClubRegistrationOut])
def list_registrations(
    status: str | None = None,
    db: Session = Depends(get_db),
    club: Club = Depends(get_admin_club),
):
    stmt = select(ClubRegistration).where(ClubRegistration.club_id == club.id)
    if status:
        stmt = stmt.where(ClubRegistration.status == status)
    registrations = (
        db.execute(stmt.order_by(ClubRegistration.created_at.desc(), ClubRegistration.id.desc()))
        .scalars()
        .all()
    )
    return [ClubRegistrationOut.model_validate(r, from_attributes=True) for r in registrations]


@router.patch("/registrations/{registration_id}", response_model=RegistrationDecisionOut)
def decide_registration(
    registration_id: int,
    payload: RegistrationStatusUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    club: Club = Depends(get_admin_club),
    mailer: Mailer = Depends(get_mailer),
):
    registration = get_owned(db, ClubRegistration, registration_id, club.id, "Registration")
    registration.status = payload.status
    if payload.status == "rejected":
        return RegistrationDecisionOut(status="rejected", message="Registration rejected")

    created, account_message = provision_student_account(db, registration)
    background_tasks.add_task(
        send_welcome_email,
        mailer,
        registration.student_name,
        registration.student_email,
        club.name,
        registration.roll_number,
        config.DEFAULT_STUDENT_PASSWORD if created else None,
    )
    return RegistrationDecisionOut(
        status="approved",
        message=f"Registration approved. {account_message}",
        account_created=created,
    )


# ---------------------------------------------------------------------------
# Reports


@router.get("/reports", response_model=list[ClubReportOut])
def list_reports(
    report_type: str | None = None,
    db: Session = Depends(get_db),
    club: Club = Depends(get_admin_club),
):
    stmt = select(ClubReport).where(ClubReport.club_id == club.id)
    if report_type:
        stmt = stmt.where(ClubReport.report_type == report_type)
    reports = db.execute(stmt.order_by(ClubReport.created_at.desc(), ClubReport.id.desc())).scalars().all()
    return [ClubReportOut.model_validate(r, from_attributes=True) for r in reports]


@router.post("/reports", response_model=ClubReportOut)
def create_report(
    payload: ClubReportCreate,
    db: Session = Depends(get_db),
    club: Club = Depends(get_admin_club),
):
    report = ClubReport(club_id=club.id, **payload.model_dump())
    db.add(report)
    db.flush()
    db.refresh(report)
    return ClubReportOut.model_validate(report, from_attributes=True)


@router.get("/reports/{report_id}", response_model=ClubReportOut)
def get_report(
    report_id: int,
    db: Session = Depends(get_db),
    club: Club = Depends(get_admin_club),
):
    report = get_owned(db, ClubReport, report_id, club.id, "Report")
    return ClubReportOut.model_validate(report, from_attributes=True)


@router.delete("/reports/{report_id}", response_model=MessageOut)
def delete_report(
    report_id: int,
    db: Session = Depends(get_db),
    club: Club = Depends(get_admin_club),
):
    db.delete(get_owned(db, ClubReport, report_id, club.id, "Report"))
    return MessageOut(message="Report deleted")

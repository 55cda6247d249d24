from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from . import config
from .auth_utils import hash_password
from .models import (
    Announcement,
    Certificate,
    CertificateRequest,
    Club,
    ClubMember,
    ClubRegistration,
    ClubReport,
    Event,
    EventRegistration,
    InstitutionEvent,
    Mentor,
    StudentAccount,
)
from .schemas import (
    PASS_OUT_YEAR,
    CertificateOut,
    CertificateRequestOut,
    EventImageOut,
    EventOut,
    MentorClubSummary,
    NoticeItem,
)

INSTITUTION_LABEL = "Institution"


def serialize_event(event: Event) -> EventOut:
    return EventOut(
        id=event.id,
        club_id=event.club_id,
        title=event.title,
        description=event.description or "",
        event_date=event.event_date,
        venue=event.venue,
        registration_open=event.registration_open,
        certificate_permission=event.certificate_permission,
        created_at=event.created_at,
        images=[EventImageOut.model_validate(image, from_attributes=True) for image in event.images],
    )


def serialize_certificate(cert: Certificate, event_title: Optional[str] = None) -> CertificateOut:
    out = CertificateOut.model_validate(cert, from_attributes=True)
    out.event_title = event_title
    return out


def serialize_certificate_request(
    request: CertificateRequest, event: Optional[Event], club: Optional[Club]
) -> CertificateRequestOut:
    return CertificateRequestOut(
        id=request.id,
        event_id=request.event_id,
        club_id=request.club_id,
        status=request.status,
        requested_at=request.requested_at,
        reviewed_at=request.reviewed_at,
        event_title=event.title if event else None,
        event_date=event.event_date if event else None,
        club_name=club.name if club else None,
    )


def event_titles(db: Session, event_ids) -> dict[int, str]:
    ids = {event_id for event_id in event_ids if event_id}
    if not ids:
        return {}
    rows = db.execute(select(Event.id, Event.title).where(Event.id.in_(ids))).all()
    return {event_id: title for event_id, title in rows}


def active_member_recipients(db: Session, club_id: int) -> list[tuple[str, str]]:
    """Approved registrations of a club that have not passed out, one per email."""
    registrations = (
        db.execute(
            select(ClubRegistration).where(
                ClubRegistration.club_id == club_id,
                ClubRegistration.status == "approved",
            )
        )
        .scalars()
        .all()
    )
    seen: dict[str, str] = {}
    for registration in registrations:
        if registration.year is None or registration.year == PASS_OUT_YEAR:
            continue
        seen.setdefault(registration.student_email.lower(), registration.student_name)
    return list(seen.items())


def mentor_recipients(db: Session) -> list[tuple[str, str]]:
    mentors = db.execute(select(Mentor).order_by(Mentor.id.asc())).scalars().all()
    return [(m.email, m.name) for m in mentors]


def event_registrant_recipients(db: Session, event_id: int) -> list[tuple[str, str]]:
    registrations = (
        db.execute(select(EventRegistration).where(EventRegistration.event_id == event_id))
        .scalars()
        .all()
    )
    return [(r.student_email, r.student_name) for r in registrations]


def provision_student_account(db: Session, registration: ClubRegistration) -> tuple[bool, str]:
    """Create the student login for an approved registration if it is missing."""
    if not registration.roll_number:
        return False, "Registration has no roll number; no student account created"
    roll_number = registration.roll_number.upper()
    existing = db.execute(
        select(StudentAccount).where(StudentAccount.roll_number == roll_number)
    ).scalar_one_or_none()
    if existing:
        if not existing.student_email:
            existing.student_email = registration.student_email
        return False, "Account already exists"
    db.add(
        StudentAccount(
            roll_number=roll_number,
            student_email=registration.student_email,
            password_hash=hash_password(config.DEFAULT_STUDENT_PASSWORD),
        )
    )
    db.flush()
    return True, "Student account created"


def club_overview(db: Session, club: Club) -> MentorClubSummary:
    def count(stmt) -> int:
        return db.execute(stmt).scalar() or 0

    return MentorClubSummary(
        id=club.id,
        name=club.name,
        short_description=club.short_description,
        logo_url=club.logo_url,
        is_active=club.is_active,
        registration_open=club.registration_open,
        member_count=count(
            select(func.count(ClubRegistration.id)).where(
                ClubRegistration.club_id == club.id,
                ClubRegistration.status == "approved",
            )
        ),
        pending_registrations=count(
            select(func.count(ClubRegistration.id)).where(
                ClubRegistration.club_id == club.id,
                ClubRegistration.status == "pending",
            )
        ),
        roster_count=count(select(func.count(ClubMember.id)).where(ClubMember.club_id == club.id)),
        report_count=count(select(func.count(ClubReport.id)).where(ClubReport.club_id == club.id)),
    )


def notice_items(db: Session, now: Optional[datetime] = None) -> list[NoticeItem]:
    """Recent announcements plus upcoming club and institution events, newest first."""
    now = now or datetime.utcnow()
    today = now.date()
    window_start = now - timedelta(days=config.NOTICE_WINDOW_DAYS)
    new_since = now - timedelta(days=1)
    items: list[NoticeItem] = []

    announcements = db.execute(
        select(Announcement, Club)
        .join(Club, Club.id == Announcement.club_id)
        .where(Announcement.created_at >= window_start, Club.is_active.is_(True))
    ).all()
    for announcement, club in announcements:
        items.append(
            NoticeItem(
                id=f"announcement-{announcement.id}",
                type="announcement",
                title=announcement.title,
                content=announcement.content,
                club_id=club.id,
                club_name=club.name,
                club_logo=club.logo_url,
                created_at=announcement.created_at,
                is_new=announcement.created_at >= new_since,
            )
        )

    events = db.execute(
        select(Event, Club)
        .join(Club, Club.id == Event.club_id)
        .where(Event.event_date >= now, Club.is_active.is_(True))
    ).all()
    for event, club in events:
        items.append(
            NoticeItem(
                id=f"event-{event.id}",
                type="event",
                title=event.title,
                content=event.description or "",
                club_id=club.id,
                club_name=club.name,
                club_logo=club.logo_url,
                created_at=event.created_at,
                event_date=event.event_date,
                event_id=event.id,
                is_new=event.created_at >= new_since,
            )
        )

    institution_events = (
        db.execute(select(InstitutionEvent).where(InstitutionEvent.event_date >= today))
        .scalars()
        .all()
    )
    for inst in institution_events:
        items.append(
            NoticeItem(
                id=f"institution-{inst.id}",
                type="event",
                title=inst.name,
                content=inst.description or "",
                club_name=INSTITUTION_LABEL,
                created_at=inst.created_at,
                event_date=_start_of(inst.event_date),
                is_new=inst.created_at >= new_since,
            )
        )

    items.sort(key=lambda item: item.created_at, reverse=True)
    return items


def _start_of(day: date) -> datetime:
    return datetime.combine(day, time.min)

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..deps import get_db, get_student
from ..models import Certificate, Club, ClubRegistration, ClubReport, Event, EventAttendance, StudentAccount
from ..schemas import (
    CertificateOut,
    StudentAttendanceOut,
    StudentClubOut,
    StudentProfileOut,
    StudentProfileUpdate,
    StudentReportOut,
)
from ..services import event_titles, serialize_certificate

router = APIRouter(prefix="/api/students/me")


@router.get("/clubs", response_model=list[StudentClubOut])
def my_clubs(db: Session = Depends(get_db), student: StudentAccount = Depends(get_student)):
    rows = db.execute(
        select(ClubRegistration, Club)
        .join(Club, Club.id == ClubRegistration.club_id)
        .where(
            func.upper(ClubRegistration.roll_number) == student.roll_number,
            ClubRegistration.status == "approved",
        )
        .order_by(Club.name.asc())
    ).all()
    return [
        StudentClubOut(
            registration_id=registration.id,
            club_id=club.id,
            club_name=club.name,
            short_description=club.short_description,
            logo_url=club.logo_url,
        )
        for registration, club in rows
    ]


@router.get("/certificates", response_model=list[CertificateOut])
def my_certificates(db: Session = Depends(get_db), student: StudentAccount = Depends(get_student)):
    certificates = (
        db.execute(
            select(Certificate)
            .where(Certificate.roll_number == student.roll_number)
            .order_by(Certificate.issued_at.desc(), Certificate.id.desc())
        )
        .scalars()
        .all()
    )
    titles = event_titles(db, (c.event_id for c in certificates))
    return [serialize_certificate(c, titles.get(c.event_id)) for c in certificates]


@router.get("/attendance", response_model=list[StudentAttendanceOut])
def my_attendance(db: Session = Depends(get_db), student: StudentAccount = Depends(get_student)):
    rows = db.execute(
        select(EventAttendance, Event, Club)
        .join(Event, Event.id == EventAttendance.event_id)
        .join(Club, Club.id == Event.club_id)
        .where(
            func.upper(EventAttendance.roll_number) == student.roll_number,
            EventAttendance.is_present.is_(True),
        )
        .order_by(EventAttendance.scanned_at.desc())
    ).all()
    return [
        StudentAttendanceOut(
            id=attendance.id,
            event_id=event.id,
            event_title=event.title,
            event_date=event.event_date,
            club_name=club.name,
            scanned_at=attendance.scanned_at,
        )
        for attendance, event, club in rows
    ]


@router.get("/reports", response_model=list[StudentReportOut])
def my_reports(db: Session = Depends(get_db), student: StudentAccount = Depends(get_student)):
    rows = db.execute(
        select(ClubReport, Club)
        .join(Club, Club.id == ClubReport.club_id)
        .order_by(ClubReport.created_at.desc(), ClubReport.id.desc())
    ).all()
    return [
        StudentReportOut(
            id=report.id,
            title=report.title,
            report_type=report.report_type,
            report_date=report.report_date,
            club_name=club.name,
            created_at=report.created_at,
        )
        for report, club in rows
        if student.roll_number in (report.participants_roll_numbers or [])
    ]


@router.get("/profile", response_model=StudentProfileOut)
def my_profile(student: StudentAccount = Depends(get_student)):
    return StudentProfileOut.model_validate(student, from_attributes=True)


@router.patch("/profile", response_model=StudentProfileOut)
def update_my_profile(
    payload: StudentProfileUpdate,
    db: Session = Depends(get_db),
    student: StudentAccount = Depends(get_student),
):
    student.student_email = payload.student_email
    student.phone = payload.phone
    # keep the roll number's club registrations in step with the account
    registrations = db.execute(
        select(ClubRegistration).where(func.upper(ClubRegistration.roll_number) == student.roll_number)
    ).scalars().all()
    for registration in registrations:
        registration.student_email = payload.student_email
        registration.phone = payload.phone
    db.commit()
    db.refresh(student)
    return StudentProfileOut.model_validate(student, from_attributes=True)

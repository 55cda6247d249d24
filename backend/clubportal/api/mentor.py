import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..auth_utils import hash_password
from ..deps import get_db, get_mentor
from ..models import (
    CertificateRequest,
    Club,
    ClubAdmin,
    ClubMember,
    ClubRegistration,
    ClubReport,
    Event,
    InstitutionEvent,
    Mentor,
)
from ..schemas import (
    CertificateRequestOut,
    ClubCreate,
    ClubCreatedOut,
    ClubMemberOut,
    ClubOut,
    ClubRegistrationOut,
    ClubReportOut,
    ClubStatusUpdate,
    InstitutionEventCreate,
    InstitutionEventOut,
    InstitutionEventUpdate,
    MentorClubDetail,
    MentorClubSummary,
    MentorCreate,
    MentorOut,
    MessageOut,
)
from ..services import club_overview, serialize_certificate_request

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/mentor")


def _club(db: Session, club_id: int) -> Club:
    club = db.get(Club, club_id)
    if not club:
        raise HTTPException(status_code=404, detail="Club not found")
    return club


# ---------------------------------------------------------------------------
# Clubs


@router.get("/clubs", response_model=list[MentorClubSummary])
def clubs_overview(db: Session = Depends(get_db), mentor: Mentor = Depends(get_mentor)):
    clubs = db.execute(select(Club).order_by(Club.name.asc())).scalars().all()
    return [club_overview(db, club) for club in clubs]


@router.post("/clubs", response_model=ClubCreatedOut)
def create_club(
    payload: ClubCreate,
    db: Session = Depends(get_db),
    mentor: Mentor = Depends(get_mentor),
):
    if db.execute(select(Club.id).where(func.lower(Club.name) == payload.name.lower())).first():
        raise HTTPException(status_code=409, detail="A club with this name already exists")
    if payload.admin_email and db.execute(
        select(ClubAdmin.id).where(ClubAdmin.email == payload.admin_email)
    ).first():
        raise HTTPException(status_code=409, detail="This admin email is already in use")

    club = Club(
        name=payload.name,
        short_description=payload.short_description,
        registration_open=payload.registration_open,
        is_active=True,
    )
    db.add(club)
    db.flush()
    if payload.admin_email and payload.admin_password:
        db.add(
            ClubAdmin(
                club_id=club.id,
                email=payload.admin_email,
                password_hash=hash_password(payload.admin_password),
            )
        )
        db.flush()
    logger.info("mentor %s created club %s", mentor.email, club.name)
    return ClubCreatedOut(message="Club created successfully", club_id=club.id)


@router.patch("/clubs/{club_id}/status", response_model=MessageOut)
def set_club_status(
    club_id: int,
    payload: ClubStatusUpdate,
    db: Session = Depends(get_db),
    mentor: Mentor = Depends(get_mentor),
):
    club = _club(db, club_id)
    club.is_active = payload.is_active
    club.updated_at = datetime.utcnow()
    state = "enabled" if payload.is_active else "disabled"
    logger.info("mentor %s %s club %s", mentor.email, state, club.name)
    return MessageOut(message=f"Club {state} successfully")


@router.get("/clubs/{club_id}", response_model=MentorClubDetail)
def club_detail(
    club_id: int,
    db: Session = Depends(get_db),
    mentor: Mentor = Depends(get_mentor),
):
    club = _club(db, club_id)
    members = (
        db.execute(
            select(ClubMember)
            .where(ClubMember.club_id == club.id)
            .order_by(ClubMember.created_at.asc(), ClubMember.id.asc())
        )
        .scalars()
        .all()
    )
    registrations = (
        db.execute(
            select(ClubRegistration)
            .where(ClubRegistration.club_id == club.id)
            .order_by(ClubRegistration.created_at.desc(), ClubRegistration.id.desc())
        )
        .scalars()
        .all()
    )
    return MentorClubDetail(
        club=ClubOut.model_validate(club, from_attributes=True),
        members=[ClubMemberOut.model_validate(m, from_attributes=True) for m in members],
        registrations=[ClubRegistrationOut.model_validate(r, from_attributes=True) for r in registrations],
    )


@router.get("/clubs/{club_id}/reports", response_model=list[ClubReportOut])
def club_reports(
    club_id: int,
    db: Session = Depends(get_db),
    mentor: Mentor = Depends(get_mentor),
):
    club = _club(db, club_id)
    reports = (
        db.execute(
            select(ClubReport)
            .where(ClubReport.club_id == club.id)
            .order_by(ClubReport.created_at.desc(), ClubReport.id.desc())
        )
        .scalars()
        .all()
    )
    return [ClubReportOut.model_validate(r, from_attributes=True) for r in reports]


# ---------------------------------------------------------------------------
# Certificate requests


@router.get("/certificate-requests", response_model=list[CertificateRequestOut])
def list_certificate_requests(
    status: str = "pending",
    db: Session = Depends(get_db),
    mentor: Mentor = Depends(get_mentor),
):
    stmt = (
        select(CertificateRequest, Event, Club)
        .join(Event, Event.id == CertificateRequest.event_id)
        .join(Club, Club.id == CertificateRequest.club_id)
    )
    if status != "all":
        stmt = stmt.where(CertificateRequest.status == status)
    rows = db.execute(
        stmt.order_by(CertificateRequest.requested_at.desc(), CertificateRequest.id.desc())
    ).all()
    return [serialize_certificate_request(request, event, club) for request, event, club in rows]


def _review_request(db: Session, request_id: int, status: str) -> CertificateRequestOut:
    request = db.get(CertificateRequest, request_id)
    if not request:
        raise HTTPException(status_code=404, detail="Certificate request not found")
    if request.status != "pending":
        raise HTTPException(status_code=409, detail=f"Request already {request.status}")
    event = db.get(Event, request.event_id)
    request.status = status
    request.reviewed_at = datetime.utcnow()
    if status == "approved" and event:
        event.certificate_permission = True
    db.flush()
    return serialize_certificate_request(request, event, db.get(Club, request.club_id))


@router.post("/certificate-requests/{request_id}/approve", response_model=CertificateRequestOut)
def approve_certificate_request(
    request_id: int,
    db: Session = Depends(get_db),
    mentor: Mentor = Depends(get_mentor),
):
    logger.info("mentor %s approving certificate request %s", mentor.email, request_id)
    return _review_request(db, request_id, "approved")


@router.post("/certificate-requests/{request_id}/reject", response_model=CertificateRequestOut)
def reject_certificate_request(
    request_id: int,
    db: Session = Depends(get_db),
    mentor: Mentor = Depends(get_mentor),
):
    logger.info("mentor %s rejecting certificate request %s", mentor.email, request_id)
    return _review_request(db, request_id, "rejected")


# ---------------------------------------------------------------------------
# Institution events


@router.post("/institution-events", response_model=InstitutionEventOut)
def create_institution_event(
    payload: InstitutionEventCreate,
    db: Session = Depends(get_db),
    mentor: Mentor = Depends(get_mentor),
):
    event = InstitutionEvent(created_by_mentor_id=mentor.id, **payload.model_dump())
    db.add(event)
    db.flush()
    db.refresh(event)
    return InstitutionEventOut.model_validate(event, from_attributes=True)


@router.patch("/institution-events/{institution_event_id}", response_model=InstitutionEventOut)
def update_institution_event(
    institution_event_id: int,
    payload: InstitutionEventUpdate,
    db: Session = Depends(get_db),
    mentor: Mentor = Depends(get_mentor),
):
    event = db.get(InstitutionEvent, institution_event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Institution event not found")
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in ("name", "event_date"):
            continue
        setattr(event, field, value)
    db.flush()
    db.refresh(event)
    return InstitutionEventOut.model_validate(event, from_attributes=True)


@router.delete("/institution-events/{institution_event_id}", response_model=MessageOut)
def delete_institution_event(
    institution_event_id: int,
    db: Session = Depends(get_db),
    mentor: Mentor = Depends(get_mentor),
):
    event = db.get(InstitutionEvent, institution_event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Institution event not found")
    db.delete(event)
    return MessageOut(message="Institution event deleted")


# ---------------------------------------------------------------------------
# Mentor accounts


@router.get("/mentors", response_model=list[MentorOut])
def list_mentors(db: Session = Depends(get_db), mentor: Mentor = Depends(get_mentor)):
    mentors = db.execute(select(Mentor).order_by(Mentor.name.asc())).scalars().all()
    return [MentorOut.model_validate(m, from_attributes=True) for m in mentors]


@router.post("/mentors", response_model=MentorOut)
def create_mentor(
    payload: MentorCreate,
    db: Session = Depends(get_db),
    mentor: Mentor = Depends(get_mentor),
):
    if db.execute(select(Mentor.id).where(Mentor.email == payload.email)).first():
        raise HTTPException(status_code=409, detail="A mentor with this email already exists")
    new_mentor = Mentor(
        name=payload.name,
        email=payload.email,
        password_hash=hash_password(payload.password),
    )
    db.add(new_mentor)
    db.flush()
    db.refresh(new_mentor)
    logger.info("mentor %s created mentor account %s", mentor.email, new_mentor.email)
    return MentorOut.model_validate(new_mentor, from_attributes=True)

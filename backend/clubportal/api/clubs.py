import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from ..deps import get_db
from ..models import Announcement, Club, ClubMember, ClubRegistration, Event
from ..schemas import (
    PASS_OUT_YEAR,
    AnnouncementOut,
    ClubMemberOut,
    ClubOut,
    ClubRegistrationCreate,
    ClubRegistrationOut,
    EventOut,
    PastMemberOut,
)
from ..services import serialize_event

logger = logging.getLogger(__name__)

router = APIRouter()


def _active_club(db: Session, club_id: int) -> Club:
    club = db.get(Club, club_id)
    if not club or not club.is_active:
        raise HTTPException(status_code=404, detail="Club not found")
    return club


@router.get("/api/clubs", response_model=list[ClubOut])
def list_clubs(include_inactive: bool = False, db: Session = Depends(get_db)):
    stmt = select(Club)
    if not include_inactive:
        stmt = stmt.where(Club.is_active.is_(True))
    clubs = db.execute(stmt.order_by(Club.name.asc())).scalars().all()
    return [ClubOut.model_validate(club, from_attributes=True) for club in clubs]


@router.get("/api/clubs/{club_id}", response_model=ClubOut)
def get_club(club_id: int, db: Session = Depends(get_db)):
    return ClubOut.model_validate(_active_club(db, club_id), from_attributes=True)


@router.get("/api/clubs/{club_id}/members", response_model=list[ClubMemberOut])
def list_club_members(club_id: int, db: Session = Depends(get_db)):
    _active_club(db, club_id)
    members = (
        db.execute(
            select(ClubMember)
            .where(ClubMember.club_id == club_id)
            .order_by(ClubMember.created_at.asc(), ClubMember.id.asc())
        )
        .scalars()
        .all()
    )
    return [ClubMemberOut.model_validate(m, from_attributes=True) for m in members]


@router.get("/api/clubs/{club_id}/announcements", response_model=list[AnnouncementOut])
def list_club_announcements(club_id: int, db: Session = Depends(get_db)):
    _active_club(db, club_id)
    announcements = (
        db.execute(
            select(Announcement)
            .where(Announcement.club_id == club_id)
            .order_by(Announcement.created_at.desc(), Announcement.id.desc())
        )
        .scalars()
        .all()
    )
    return [AnnouncementOut.model_validate(a, from_attributes=True) for a in announcements]


@router.get("/api/clubs/{club_id}/events", response_model=list[EventOut])
def list_club_events(club_id: int, db: Session = Depends(get_db)):
    _active_club(db, club_id)
    events = (
        db.execute(
            select(Event)
            .options(selectinload(Event.images))
            .where(Event.club_id == club_id)
            .order_by(Event.created_at.desc(), Event.id.desc())
        )
        .scalars()
        .all()
    )
    return [serialize_event(event) for event in events]


@router.get("/api/clubs/{club_id}/past-members", response_model=list[PastMemberOut])
def list_past_members(club_id: int, db: Session = Depends(get_db)):
    _active_club(db, club_id)
    registrations = (
        db.execute(
            select(ClubRegistration)
            .where(
                ClubRegistration.club_id == club_id,
                ClubRegistration.status == "approved",
                ClubRegistration.year == PASS_OUT_YEAR,
            )
            .order_by(ClubRegistration.student_name.asc())
        )
        .scalars()
        .all()
    )
    return [PastMemberOut.model_validate(r, from_attributes=True) for r in registrations]


@router.post("/api/clubs/{club_id}/apply", response_model=ClubRegistrationOut)
def apply_to_club(
    club_id: int,
    payload: ClubRegistrationCreate,
    db: Session = Depends(get_db),
):
    club = _active_club(db, club_id)
    if not club.registration_open:
        raise HTTPException(status_code=409, detail="Registration is closed")

    existing = db.execute(
        select(func.count(ClubRegistration.id)).where(
            ClubRegistration.club_id == club_id,
            func.lower(ClubRegistration.student_email) == payload.student_email,
            ClubRegistration.status.in_(("pending", "approved")),
        )
    ).scalar()
    if existing:
        raise HTTPException(status_code=409, detail="You have already applied to this club")

    registration = ClubRegistration(club_id=club_id, status="pending", **payload.model_dump())
    db.add(registration)
    db.flush()
    db.refresh(registration)
    logger.info("new registration %s for club %s", registration.id, club.name)
    return ClubRegistrationOut.model_validate(registration, from_attributes=True)

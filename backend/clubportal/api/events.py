import logging
import uuid
from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..deps import get_db
from ..mailer import Mailer, get_mailer
from ..models import Club, Event, EventAttendance, EventRegistration, InstitutionEvent
from ..notifications import send_event_registration_qr
from ..schemas import (
    EventDetail,
    EventRegistrationCreate,
    EventRegistrationOut,
    EventRegistrationResult,
    InstitutionEventOut,
)
from ..services import serialize_event

logger = logging.getLogger(__name__)

router = APIRouter()


def _public_event(db: Session, event_id: int) -> tuple[Event, Club]:
    row = db.execute(
        select(Event, Club)
        .join(Club, Club.id == Event.club_id)
        .where(Event.id == event_id, Club.is_active.is_(True))
    ).first()
    if not row:
        raise HTTPException(status_code=404, detail="Event not found")
    return row[0], row[1]


def find_registration(db: Session, event_id: int, email: str) -> EventRegistration | None:
    return db.execute(
        select(EventRegistration).where(
            EventRegistration.event_id == event_id,
            func.lower(EventRegistration.student_email) == email.lower(),
        )
    ).scalar_one_or_none()


@router.get("/api/events/{event_id}", response_model=EventDetail)
def get_event(event_id: int, db: Session = Depends(get_db)):
    event, club = _public_event(db, event_id)
    registrations = (
        db.execute(
            select(func.count(EventRegistration.id)).where(EventRegistration.event_id == event.id)
        ).scalar()
        or 0
    )
    return EventDetail(
        **serialize_event(event).model_dump(),
        club_name=club.name,
        registration_count=registrations,
    )


@router.post("/api/events/{event_id}/register", response_model=EventRegistrationResult)
def register_for_event(
    event_id: int,
    payload: EventRegistrationCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    event, _club = _public_event(db, event_id)
    if not event.registration_open:
        raise HTTPException(status_code=409, detail="Registration is closed for this event")

    if find_registration(db, event.id, payload.student_email):
        raise HTTPException(status_code=409, detail="Already registered")

    registration = EventRegistration(event_id=event.id, **payload.model_dump())
    db.add(registration)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Already registered")
    attendance = EventAttendance(
        event_id=event.id,
        registration_id=registration.id,
        student_name=registration.student_name,
        student_email=registration.student_email,
        roll_number=registration.roll_number,
        qr_token=str(uuid.uuid4()),
        is_present=False,
    )
    db.add(attendance)
    db.flush()
    db.refresh(registration)

    background_tasks.add_task(
        send_event_registration_qr,
        mailer,
        registration.student_name,
        registration.student_email,
        registration.roll_number,
        event.id,
        event.title,
        event.event_date,
        attendance.qr_token,
    )
    logger.info("registration %s for event %s", registration.id, event.id)
    return EventRegistrationResult(
        message="Registration successful! Check your email for your entry QR code.",
        registration=EventRegistrationOut.model_validate(registration, from_attributes=True),
    )


@router.get("/api/institution-events/upcoming", response_model=list[InstitutionEventOut])
def upcoming_institution_events(db: Session = Depends(get_db)):
    events = (
        db.execute(
            select(InstitutionEvent)
            .where(InstitutionEvent.event_date >= datetime.utcnow().date())
            .order_by(InstitutionEvent.event_date.asc())
        )
        .scalars()
        .all()
    )
    return [InstitutionEventOut.model_validate(e, from_attributes=True) for e in events]


@router.get("/api/institution-events/past", response_model=list[InstitutionEventOut])
def past_institution_events(db: Session = Depends(get_db)):
    events = (
        db.execute(
            select(InstitutionEvent)
            .where(InstitutionEvent.event_date < datetime.utcnow().date())
            .order_by(InstitutionEvent.event_date.desc())
        )
        .scalars()
        .all()
    )
    return [InstitutionEventOut.model_validate(e, from_attributes=True) for e in events]


@router.get("/api/institution-events/{institution_event_id}", response_model=InstitutionEventOut)
def get_institution_event(institution_event_id: int, db: Session = Depends(get_db)):
    event = db.get(InstitutionEvent, institution_event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Institution event not found")
    return InstitutionEventOut.model_validate(event, from_attributes=True)

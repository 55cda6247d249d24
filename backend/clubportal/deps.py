from datetime import datetime

from fastapi import Depends, Header, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from .auth_utils import find_session
from .db import get_session
from .models import AuthSession, Club, ClubAdmin, Mentor, StudentAccount


def get_db():
    with get_session() as session:
        yield session


def resolve_session(db: Session, token: str | None, role: str) -> AuthSession:
    if not token:
        raise HTTPException(status_code=401, detail="Missing session token")
    session = find_session(db, token.strip())
    if not session or session.role != role:
        raise HTTPException(status_code=401, detail="Invalid or expired session")
    if session.expires_at < datetime.utcnow():
        raise HTTPException(status_code=401, detail="Session has expired")
    return session


def student_session(
    x_student_token: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> AuthSession:
    return resolve_session(db, x_student_token, "student")


def club_admin_session(
    x_club_token: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> AuthSession:
    return resolve_session(db, x_club_token, "club_admin")


def mentor_session(
    x_mentor_token: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> AuthSession:
    return resolve_session(db, x_mentor_token, "mentor")


def get_student(
    session: AuthSession = Depends(student_session),
    db: Session = Depends(get_db),
) -> StudentAccount:
    student = db.get(StudentAccount, session.subject_id)
    if not student:
        raise HTTPException(status_code=401, detail="Invalid or expired session")
    return student


def get_club_admin(
    session: AuthSession = Depends(club_admin_session),
    db: Session = Depends(get_db),
) -> ClubAdmin:
    admin = db.get(ClubAdmin, session.subject_id)
    if not admin:
        raise HTTPException(status_code=401, detail="Invalid or expired session")
    return admin


def get_admin_club(
    admin: ClubAdmin = Depends(get_club_admin),
    db: Session = Depends(get_db),
) -> Club:
    club = db.get(Club, admin.club_id)
    if not club:
        raise HTTPException(status_code=404, detail="Club not found")
    return club


def get_mentor(
    session: AuthSession = Depends(mentor_session),
    db: Session = Depends(get_db),
) -> Mentor:
    mentor = db.get(Mentor, session.subject_id)
    if not mentor:
        raise HTTPException(status_code=401, detail="Invalid or expired session")
    return mentor


def get_owned(db: Session, model, object_id: int, club_id: int, label: str):
    """Fetch a club-scoped row, hiding rows that belong to other clubs."""
    obj = db.execute(
        select(model).where(model.id == object_id, model.club_id == club_id)
    ).scalar_one_or_none()
    if not obj:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return obj

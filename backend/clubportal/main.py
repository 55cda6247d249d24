import logging
from datetime import datetime, timedelta

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import select
from sqlalchemy.orm import Session

from . import config
from .api import auth, club_admin, clubs, events, mentor, notices, students
from .auth_utils import hash_password
from .db import Base, engine, get_session
from .models import (
    Announcement,
    Club,
    ClubAdmin,
    ClubMember,
    ClubRegistration,
    Event,
    InstitutionEvent,
    Mentor,
    StudentAccount,
)

config.configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Club Portal (FastAPI + SQLite)")

# CORS for the portal frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.CORS_ORIGIN],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(clubs.router)
app.include_router(notices.router)
app.include_router(events.router)
app.include_router(club_admin.router)
app.include_router(mentor.router)
app.include_router(students.router)


@app.on_event("startup")
def startup() -> None:
    Base.metadata.create_all(engine)
    if not config.SEED_DEMO_DATA:
        return
    with get_session() as session:
        seed_data(session)


def seed_data(session: Session) -> None:
    if not session.execute(select(Mentor).where(Mentor.email == "mentor@college.edu")).scalar_one_or_none():
        session.add(
            Mentor(
                name="Dr. Priya Sharma",
                email="mentor@college.edu",
                password_hash=hash_password("mentor123"),
            )
        )

    coding = session.execute(select(Club).where(Club.name == "Coding Club")).scalar_one_or_none()
    if not coding:
        coding = Club(
            name="Coding Club",
            short_description="Competitive programming, hackathons and open source.",
            detailed_description="Weekly contests, project nights and mentoring for every year.",
            instagram_url="https://instagram.com/codingclub",
            registration_open=True,
            is_active=True,
        )
        session.add(coding)
        session.flush()
        session.add(
            ClubAdmin(
                club_id=coding.id,
                email="coding@college.edu",
                password_hash=hash_password("admin123"),
            )
        )
        session.add_all(
            [
                ClubMember(club_id=coding.id, name="Arjun Rao", role="President"),
                ClubMember(club_id=coding.id, name="Meera Iyer", role="Secretary"),
            ]
        )
        session.add(
            Announcement(
                club_id=coding.id,
                title="Orientation",
                content="Orientation for new members this Friday in Lab 3.",
            )
        )
        session.add(
            Event(
                club_id=coding.id,
                title="Hackathon 2.0",
                description="24-hour hackathon open to all branches.",
                event_date=datetime.utcnow() + timedelta(days=5),
                venue="Main Auditorium",
                registration_open=True,
            )
        )
        session.add_all(
            [
                ClubRegistration(
                    club_id=coding.id,
                    student_name="Ravi Kumar",
                    student_email="ravi@student.college.edu",
                    roll_number="22BD1A0501",
                    year="3",
                    branch="CSE",
                    status="approved",
                ),
                ClubRegistration(
                    club_id=coding.id,
                    student_name="Sneha Reddy",
                    student_email="sneha@student.college.edu",
                    roll_number="20BD1A0507",
                    year="Pass Out",
                    branch="CSE",
                    status="approved",
                ),
                ClubRegistration(
                    club_id=coding.id,
                    student_name="Kiran Patel",
                    student_email="kiran@student.college.edu",
                    roll_number="23BD1A0512",
                    year="2",
                    branch="IT",
                    status="pending",
                ),
            ]
        )

    if not session.execute(
        select(StudentAccount).where(StudentAccount.roll_number == "22BD1A0501")
    ).scalar_one_or_none():
        session.add(
            StudentAccount(
                roll_number="22BD1A0501",
                student_email="ravi@student.college.edu",
                password_hash=hash_password(config.DEFAULT_STUDENT_PASSWORD),
            )
        )

    if not session.execute(select(Club).where(Club.name == "Music Club")).scalar_one_or_none():
        session.add(
            Club(
                name="Music Club",
                short_description="Student musicians jamming and performing on campus.",
                registration_open=False,
                is_active=True,
            )
        )

    if not session.execute(select(Club).where(Club.name == "Photography Club")).scalar_one_or_none():
        session.add(
            Club(
                name="Photography Club",
                short_description="Photo walks and exhibitions.",
                is_active=False,
            )
        )

    if not session.execute(select(InstitutionEvent)).first():
        session.add(
            InstitutionEvent(
                name="Annual Day",
                description="College annual day celebrations.",
                event_date=datetime.utcnow().date() + timedelta(days=10),
                venue="Open Air Theatre",
            )
        )
    session.flush()
    logger.debug("demo data ensured")

import os

os.environ["DATABASE_URL"] = "sqlite:///./test_clubportal.db"
os.environ["SEED_DEMO_DATA"] = "false"
os.environ["RESEND_API_KEY"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from clubportal import models
from clubportal.config import DEFAULT_STUDENT_PASSWORD
from clubportal.db import Base
from clubportal.deps import get_db
from clubportal.mailer import EmailDeliveryError, Mailer, get_mailer
from clubportal.main import app, seed_data

TEST_DB_URL = "sqlite:///./test_clubportal.db"
engine = create_engine(TEST_DB_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def override_get_db():
    session = TestingSessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


class RecordingMailer(Mailer):
    """Mailer that records messages instead of calling the provider."""

    def __init__(self, failures: int = 0, max_retries: int = 2):
        super().__init__(api_key="test-key", max_retries=max_retries, retry_delay=0, throttle=0)
        self.failures = failures
        self.calls = 0
        self.sent = []

    def deliver(self, message):
        self.calls += 1
        if self.failures:
            self.failures -= 1
            raise EmailDeliveryError("provider unavailable")
        self.sent.append(message)


@pytest.fixture()
def make_mailer():
    return RecordingMailer


@pytest.fixture()
def mailer():
    return RecordingMailer()


@pytest.fixture(autouse=True)
def setup_test_db(mailer):
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    with TestingSessionLocal() as session:
        seed_data(session)
        session.commit()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer
    yield
    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_mailer, None)
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def db_session():
    with TestingSessionLocal() as session:
        yield session


def _club_id(name: str) -> int:
    with TestingSessionLocal() as session:
        club = session.execute(select(models.Club).where(models.Club.name == name)).scalars().first()
        assert club is not None
        return club.id


def _event_id(title: str) -> int:
    with TestingSessionLocal() as session:
        event = session.execute(select(models.Event).where(models.Event.title == title)).scalars().first()
        assert event is not None
        return event.id


@pytest.fixture()
def coding_club_id():
    return _club_id("Coding Club")


@pytest.fixture()
def music_club_id():
    return _club_id("Music Club")


@pytest.fixture()
def photography_club_id():
    return _club_id("Photography Club")


@pytest.fixture()
def hackathon_id():
    return _event_id("Hackathon 2.0")


@pytest.fixture()
def student_headers(client):
    resp = client.post(
        "/api/auth/student/login",
        json={"roll_number": "22BD1A0501", "password": DEFAULT_STUDENT_PASSWORD},
    )
    assert resp.status_code == 200
    return {"X-Student-Token": resp.json()["token"]}


@pytest.fixture()
def club_headers(client):
    resp = client.post(
        "/api/auth/club/login",
        json={"email": "coding@college.edu", "password": "admin123"},
    )
    assert resp.status_code == 200
    return {"X-Club-Token": resp.json()["token"]}


@pytest.fixture()
def mentor_headers(client):
    resp = client.post(
        "/api/auth/mentor/login",
        json={"email": "mentor@college.edu", "password": "mentor123"},
    )
    assert resp.status_code == 200
    return {"X-Mentor-Token": resp.json()["token"]}


@pytest.fixture()
def register_student(client, hackathon_id):
    def _register(name="Kiran Patel", email="kiran@student.college.edu", roll_number="23BD1A0512"):
        resp = client.post(
            f"/api/events/{hackathon_id}/register",
            json={
                "student_name": name,
                "student_email": email,
                "roll_number": roll_number,
                "branch": "IT",
                "year": "2",
            },
        )
        assert resp.status_code == 200, resp.text
        with TestingSessionLocal() as session:
            attendance = session.execute(
                select(models.EventAttendance).where(
                    models.EventAttendance.registration_id == resp.json()["registration"]["id"]
                )
            ).scalar_one()
            return attendance.qr_token

    return _register

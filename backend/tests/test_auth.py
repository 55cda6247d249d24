from datetime import datetime, timedelta

from sqlalchemy import select

from clubportal import models
from clubportal.auth_utils import hash_password
from clubportal.config import DEFAULT_STUDENT_PASSWORD


def test_student_login_and_restore_session(client):
    login_resp = client.post(
        "/api/auth/student/login",
        json={"roll_number": "22bd1a0501", "password": DEFAULT_STUDENT_PASSWORD},
    )
    assert login_resp.status_code == 200
    body = login_resp.json()
    assert body["success"] is True
    assert body["roll_number"] == "22BD1A0501"
    assert body["token"]

    restore_resp = client.get(
        "/api/auth/student/session", headers={"X-Student-Token": body["token"]}
    )
    assert restore_resp.status_code == 200
    restored = restore_resp.json()
    assert restored["message"] == "Restored session"
    assert restored["token"] == body["token"]
    assert restored["roll_number"] == "22BD1A0501"


def test_login_failures_return_invalid_credentials(client):
    wrong_password = client.post(
        "/api/auth/student/login",
        json={"roll_number": "22BD1A0501", "password": "not-it"},
    )
    assert wrong_password.status_code == 401
    assert wrong_password.json()["detail"] == "Invalid credentials"

    unknown_admin = client.post(
        "/api/auth/club/login",
        json={"email": "nobody@college.edu", "password": "admin123"},
    )
    assert unknown_admin.status_code == 401
    assert unknown_admin.json()["detail"] == "Invalid credentials"

    wrong_mentor = client.post(
        "/api/auth/mentor/login",
        json={"email": "mentor@college.edu", "password": "wrong"},
    )
    assert wrong_mentor.status_code == 401


def test_token_resolution_errors(client, club_headers):
    missing = client.get("/api/auth/student/session")
    assert missing.status_code == 401
    assert missing.json()["detail"] == "Missing session token"

    bogus = client.get("/api/auth/student/session", headers={"X-Student-Token": "bogus"})
    assert bogus.status_code == 401
    assert bogus.json()["detail"] == "Invalid or expired session"

    # a club admin token is not a student token
    wrong_role = client.get(
        "/api/auth/student/session",
        headers={"X-Student-Token": club_headers["X-Club-Token"]},
    )
    assert wrong_role.status_code == 401
    assert wrong_role.json()["detail"] == "Invalid or expired session"


def test_expired_session_is_rejected(client, student_headers, db_session):
    session = db_session.execute(
        select(models.AuthSession).where(
            models.AuthSession.token == student_headers["X-Student-Token"]
        )
    ).scalar_one()
    session.expires_at = datetime.utcnow() - timedelta(minutes=1)
    db_session.commit()

    resp = client.get("/api/auth/student/session", headers=student_headers)
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Session has expired"


def test_login_purges_expired_sessions(client, student_headers, db_session):
    stale = db_session.execute(
        select(models.AuthSession).where(
            models.AuthSession.token == student_headers["X-Student-Token"]
        )
    ).scalar_one()
    stale.expires_at = datetime.utcnow() - timedelta(hours=1)
    db_session.commit()

    resp = client.post(
        "/api/auth/student/login",
        json={"roll_number": "22BD1A0501", "password": DEFAULT_STUDENT_PASSWORD},
    )
    assert resp.status_code == 200

    db_session.expire_all()
    tokens = db_session.execute(select(models.AuthSession.token)).scalars().all()
    assert student_headers["X-Student-Token"] not in tokens
    assert resp.json()["token"] in tokens


def test_logout_ends_session(client, mentor_headers):
    assert client.get("/api/auth/mentor/session", headers=mentor_headers).status_code == 200

    logout_resp = client.post("/api/auth/mentor/logout", headers=mentor_headers)
    assert logout_resp.status_code == 200
    assert logout_resp.json()["success"] is True

    after = client.get("/api/auth/mentor/session", headers=mentor_headers)
    assert after.status_code == 401

    # logging out twice is harmless
    assert client.post("/api/auth/mentor/logout", headers=mentor_headers).status_code == 200


def test_club_and_mentor_sessions_return_identifiers(client, coding_club_id):
    club_resp = client.post(
        "/api/auth/club/login",
        json={"email": "CODING@college.edu", "password": "admin123"},
    )
    assert club_resp.status_code == 200
    assert club_resp.json()["club_id"] == coding_club_id

    restored = client.get(
        "/api/auth/club/session", headers={"X-Club-Token": club_resp.json()["token"]}
    )
    assert restored.status_code == 200
    assert restored.json()["club_id"] == coding_club_id

    mentor_resp = client.post(
        "/api/auth/mentor/login",
        json={"email": "mentor@college.edu", "password": "mentor123"},
    )
    assert mentor_resp.status_code == 200
    assert isinstance(mentor_resp.json()["mentor_id"], int)


def test_change_password(client, club_headers):
    wrong_current = client.post(
        "/api/auth/club/change-password",
        headers=club_headers,
        json={"current_password": "nope", "new_password": "newsecret"},
    )
    assert wrong_current.status_code == 400

    too_short = client.post(
        "/api/auth/club/change-password",
        headers=club_headers,
        json={"current_password": "admin123", "new_password": "abc"},
    )
    assert too_short.status_code == 422

    changed = client.post(
        "/api/auth/club/change-password",
        headers=club_headers,
        json={"current_password": "admin123", "new_password": "newsecret"},
    )
    assert changed.status_code == 200

    # the current session stays valid
    assert client.get("/api/auth/club/session", headers=club_headers).status_code == 200

    old_login = client.post(
        "/api/auth/club/login", json={"email": "coding@college.edu", "password": "admin123"}
    )
    assert old_login.status_code == 401
    new_login = client.post(
        "/api/auth/club/login", json={"email": "coding@college.edu", "password": "newsecret"}
    )
    assert new_login.status_code == 200


def test_forgot_password_is_generic_for_unknown_roll_numbers(client, mailer):
    resp = client.post("/api/auth/student/forgot-password", json={"roll_number": "99BD1A9999"})
    assert resp.status_code == 200
    assert "If an account exists" in resp.json()["message"]
    assert mailer.sent == []


def test_forgot_and_reset_password(client, mailer, db_session):
    resp = client.post("/api/auth/student/forgot-password", json={"roll_number": "22bd1a0501"})
    assert resp.status_code == 200
    assert "If an account exists" in resp.json()["message"]

    assert len(mailer.sent) == 1
    message = mailer.sent[0]
    assert message.to == "ravi@student.college.edu"
    assert message.subject == "Reset Your Password - Club Portal"

    reset = db_session.execute(select(models.PasswordResetToken)).scalar_one()
    assert reset.roll_number == "22BD1A0501"
    assert reset.token in message.html
    assert reset.expires_at > datetime.utcnow() + timedelta(minutes=50)

    reset_resp = client.post(
        "/api/auth/student/reset-password",
        json={"token": reset.token, "new_password": "fresh-pass"},
    )
    assert reset_resp.status_code == 200

    login = client.post(
        "/api/auth/student/login",
        json={"roll_number": "22BD1A0501", "password": "fresh-pass"},
    )
    assert login.status_code == 200

    reused = client.post(
        "/api/auth/student/reset-password",
        json={"token": reset.token, "new_password": "another-pass"},
    )
    assert reused.status_code == 400


def test_reset_password_rejects_expired_token(client, db_session):
    db_session.add(
        models.PasswordResetToken(
            roll_number="22BD1A0501",
            token="expired-token",
            expires_at=datetime.utcnow() - timedelta(minutes=1),
        )
    )
    db_session.commit()

    resp = client.post(
        "/api/auth/student/reset-password",
        json={"token": "expired-token", "new_password": "whatever1"},
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid or expired reset token"


def test_forgot_password_falls_back_to_registration_email(client, mailer, db_session):
    db_session.add_all(
        [
            models.StudentAccount(roll_number="20BD1A0507", password_hash=hash_password("whatever")),
            models.StudentAccount(roll_number="21BD1A0599", password_hash=hash_password("whatever")),
        ]
    )
    db_session.commit()

    resp = client.post("/api/auth/student/forgot-password", json={"roll_number": "20BD1A0507"})
    assert resp.status_code == 200
    assert [m.to for m in mailer.sent] == ["sneha@student.college.edu"]

    db_session.expire_all()
    account = db_session.execute(
        select(models.StudentAccount).where(models.StudentAccount.roll_number == "20BD1A0507")
    ).scalar_one()
    assert account.student_email == "sneha@student.college.edu"

    no_email = client.post("/api/auth/student/forgot-password", json={"roll_number": "21BD1A0599"})
    assert no_email.status_code == 400

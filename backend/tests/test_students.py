from sqlalchemy import select

from clubportal import models


def test_student_routes_require_student_token(client, club_headers):
    assert client.get("/api/students/me/clubs").status_code == 401
    assert client.get("/api/students/me/clubs", headers=club_headers).status_code == 401


def test_my_clubs_lists_approved_memberships(client, student_headers):
    resp = client.get("/api/students/me/clubs", headers=student_headers)
    assert resp.status_code == 200
    clubs = resp.json()
    assert [c["club_name"] for c in clubs] == ["Coding Club"]


def test_my_clubs_ignores_pending_registrations(client, music_club_id, student_headers, db_session):
    db_session.add(
        models.ClubRegistration(
            club_id=music_club_id,
            student_name="Ravi Kumar",
            student_email="ravi@student.college.edu",
            roll_number="22bd1a0501",
            status="pending",
        )
    )
    db_session.commit()

    clubs = client.get("/api/students/me/clubs", headers=student_headers).json()
    assert [c["club_name"] for c in clubs] == ["Coding Club"]


def test_my_certificates_and_attendance(
    client, student_headers, club_headers, hackathon_id, register_student, db_session
):
    token = register_student(name="Ravi Kumar", email="ravi@student.college.edu", roll_number="22BD1A0501")
    assert client.get("/api/students/me/attendance", headers=student_headers).json() == []

    scan = client.post(
        f"/api/club-admin/events/{hackathon_id}/attendance/scan",
        headers=club_headers,
        json={"token": token, "event_id": hackathon_id},
    )
    assert scan.status_code == 200

    attendance = client.get("/api/students/me/attendance", headers=student_headers).json()
    assert len(attendance) == 1
    assert attendance[0]["event_title"] == "Hackathon 2.0"
    assert attendance[0]["club_name"] == "Coding Club"
    assert attendance[0]["scanned_at"] is not None

    event = db_session.get(models.Event, hackathon_id)
    event.certificate_permission = True
    db_session.commit()

    issued = client.post(f"/api/club-admin/events/{hackathon_id}/certificates", headers=club_headers)
    assert issued.json()["issued"] == 1

    certificates = client.get("/api/students/me/certificates", headers=student_headers).json()
    assert len(certificates) == 1
    assert certificates[0]["event_title"] == "Hackathon 2.0"
    assert certificates[0]["student_name"] == "Ravi Kumar"


def test_my_reports_lists_only_reports_i_took_part_in(client, student_headers, club_headers):
    for title, participants in [
        ("September MoM", ["22bd1a0501", "23BD1A0512"]),
        ("October MoM", ["23BD1A0512"]),
    ]:
        resp = client.post(
            "/api/club-admin/reports",
            headers=club_headers,
            json={
                "title": title,
                "report_type": "mom",
                "report_date": "2024-09-05",
                "participants_roll_numbers": participants,
                "report_data": {"agenda": "Plan the hackathon"},
            },
        )
        assert resp.status_code == 200

    reports = client.get("/api/students/me/reports", headers=student_headers).json()
    assert [r["title"] for r in reports] == ["September MoM"]
    assert reports[0]["club_name"] == "Coding Club"
    assert reports[0]["report_type"] == "mom"
    assert reports[0]["report_date"] == "2024-09-05"


def test_update_profile_mirrors_onto_club_registrations(client, student_headers, db_session):
    profile = client.get("/api/students/me/profile", headers=student_headers).json()
    assert profile["roll_number"] == "22BD1A0501"

    resp = client.patch(
        "/api/students/me/profile",
        headers=student_headers,
        json={"student_email": " Ravi.K@Student.College.edu ", "phone": "9876543210"},
    )
    assert resp.status_code == 200
    assert resp.json() == {
        "roll_number": "22BD1A0501",
        "student_email": "ravi.k@student.college.edu",
        "phone": "9876543210",
    }

    registrations = db_session.execute(
        select(models.ClubRegistration).where(models.ClubRegistration.roll_number == "22BD1A0501")
    ).scalars().all()
    assert registrations
    assert {(r.student_email, r.phone) for r in registrations} == {("ravi.k@student.college.edu", "9876543210")}

    cleared = client.patch(
        "/api/students/me/profile",
        headers=student_headers,
        json={"student_email": "ravi.k@student.college.edu", "phone": "  "},
    )
    assert cleared.json()["phone"] is None

    invalid = client.patch("/api/students/me/profile", headers=student_headers, json={"student_email": "not-an-email"})
    assert invalid.status_code == 422

from datetime import datetime, timedelta

from sqlalchemy import select

from clubportal import models


def test_list_clubs_hides_inactive_by_default(client):
    resp = client.get("/api/clubs")
    assert resp.status_code == 200
    names = [club["name"] for club in resp.json()]
    assert names == ["Coding Club", "Music Club"]

    expected_keys = {
        "id",
        "name",
        "short_description",
        "logo_url",
        "instagram_url",
        "website_url",
        "registration_open",
        "is_active",
    }
    for club in resp.json():
        assert expected_keys.issubset(club.keys())

    all_resp = client.get("/api/clubs", params={"include_inactive": True})
    assert [club["name"] for club in all_resp.json()] == [
        "Coding Club",
        "Music Club",
        "Photography Club",
    ]


def test_get_club_and_public_lists(client, coding_club_id, photography_club_id):
    club_resp = client.get(f"/api/clubs/{coding_club_id}")
    assert club_resp.status_code == 200
    assert club_resp.json()["instagram_url"] == "https://instagram.com/codingclub"

    assert client.get(f"/api/clubs/{photography_club_id}").status_code == 404
    assert client.get("/api/clubs/9999").status_code == 404

    members = client.get(f"/api/clubs/{coding_club_id}/members").json()
    assert [m["name"] for m in members] == ["Arjun Rao", "Meera Iyer"]
    assert members[0]["role"] == "President"

    announcements = client.get(f"/api/clubs/{coding_club_id}/announcements").json()
    assert [a["title"] for a in announcements] == ["Orientation"]

    events = client.get(f"/api/clubs/{coding_club_id}/events").json()
    assert [e["title"] for e in events] == ["Hackathon 2.0"]
    assert events[0]["images"] == []
    assert events[0]["certificate_permission"] is False


def test_past_members_lists_pass_out_students(client, coding_club_id):
    resp = client.get(f"/api/clubs/{coding_club_id}/past-members")
    assert resp.status_code == 200
    past = resp.json()
    assert [p["student_name"] for p in past] == ["Sneha Reddy"]
    assert "student_email" not in past[0]


def test_apply_to_club(client, coding_club_id, db_session):
    payload = {
        "student_name": "Anita Verma",
        "student_email": "Anita@Student.College.edu",
        "phone": "9876543210",
        "roll_number": "24bd1a0511",
        "year": "1",
        "branch": "ECE",
        "why_join": "I like building things.",
    }
    resp = client.post(f"/api/clubs/{coding_club_id}/apply", json=payload)
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "pending"
    assert body["roll_number"] == "24BD1A0511"
    assert body["student_email"] == "anita@student.college.edu"

    duplicate = client.post(f"/api/clubs/{coding_club_id}/apply", json=payload)
    assert duplicate.status_code == 409

    stored = db_session.execute(
        select(models.ClubRegistration).where(
            models.ClubRegistration.student_email == "anita@student.college.edu"
        )
    ).scalars().all()
    assert len(stored) == 1


def test_apply_after_rejection_is_allowed(client, coding_club_id, db_session):
    registration = db_session.execute(
        select(models.ClubRegistration).where(models.ClubRegistration.student_name == "Kiran Patel")
    ).scalar_one()
    registration.status = "rejected"
    db_session.commit()

    resp = client.post(
        f"/api/clubs/{coding_club_id}/apply",
        json={"student_name": "Kiran Patel", "student_email": "kiran@student.college.edu"},
    )
    assert resp.status_code == 200


def test_apply_rejects_closed_inactive_and_invalid(client, music_club_id, photography_club_id, coding_club_id):
    applicant = {"student_name": "Dev", "student_email": "dev@student.college.edu"}

    closed = client.post(f"/api/clubs/{music_club_id}/apply", json=applicant)
    assert closed.status_code == 409
    assert closed.json()["detail"] == "Registration is closed"

    inactive = client.post(f"/api/clubs/{photography_club_id}/apply", json=applicant)
    assert inactive.status_code == 404

    bad_email = client.post(
        f"/api/clubs/{coding_club_id}/apply",
        json={"student_name": "Dev", "student_email": "not-an-email"},
    )
    assert bad_email.status_code == 422

    blank_name = client.post(
        f"/api/clubs/{coding_club_id}/apply",
        json={"student_name": "   ", "student_email": "dev@student.college.edu"},
    )
    assert blank_name.status_code == 422


def test_notice_board_combines_recent_items(client, coding_club_id, db_session):
    db_session.add_all(
        [
            models.Announcement(
                club_id=coding_club_id,
                title="Older news",
                content="Posted two days ago.",
                created_at=datetime.utcnow() - timedelta(days=2),
            ),
            models.Announcement(
                club_id=coding_club_id,
                title="Stale news",
                content="Outside the window.",
                created_at=datetime.utcnow() - timedelta(days=5),
            ),
            models.Event(
                club_id=coding_club_id,
                title="Finished Meetup",
                event_date=datetime.utcnow() - timedelta(days=1),
            ),
        ]
    )
    db_session.commit()

    resp = client.get("/api/notices")
    assert resp.status_code == 200
    notices = resp.json()
    titles = [n["title"] for n in notices]
    assert "Orientation" in titles
    assert "Hackathon 2.0" in titles
    assert "Annual Day" in titles
    assert "Older news" in titles
    assert "Stale news" not in titles
    assert "Finished Meetup" not in titles

    by_title = {n["title"]: n for n in notices}
    assert by_title["Orientation"]["type"] == "announcement"
    assert by_title["Orientation"]["is_new"] is True
    assert by_title["Older news"]["is_new"] is False
    assert by_title["Hackathon 2.0"]["type"] == "event"
    assert by_title["Hackathon 2.0"]["event_id"] is not None
    assert by_title["Annual Day"]["club_name"] == "Institution"
    assert by_title["Annual Day"]["club_id"] is None

    # newest first
    assert notices[-1]["title"] == "Older news"

    has_new = client.get("/api/notices/has-new")
    assert has_new.status_code == 200
    assert has_new.json() == {"has_new": True}


def test_notice_board_skips_inactive_clubs(client, photography_club_id, db_session):
    db_session.add(
        models.Announcement(club_id=photography_club_id, title="Hidden", content="Inactive club.")
    )
    db_session.commit()

    titles = [n["title"] for n in client.get("/api/notices").json()]
    assert "Hidden" not in titles

"""Tests for notification, announcement, help and meeting endpoints (F5)."""

from lms.core import notifications

START = "2025-06-01T15:00:00+00:00"


class TestNotificationEndpoints:
    def test_inbox_flow(self, client, student, as_user):
        headers = as_user(student)
        for index in range(2):
            notifications.notify([student.id], "system", f"Note {index}", "body")

        inbox = client.get("/api/notifications", headers=headers).json()
        assert inbox["unread_count"] == 2
        first_id = inbox["notifications"][0]["id"]

        assert client.post(f"/api/notifications/{first_id}/read", headers=headers).status_code == 204
        assert client.get("/api/notifications/unread-count", headers=headers).json() == {"count": 1}

        assert client.post("/api/notifications/read-all", headers=headers).json() == {"count": 1}
        assert client.delete(f"/api/notifications/{first_id}", headers=headers).status_code == 204
        assert client.delete(f"/api/notifications/{first_id}", headers=headers).status_code == 404

    def test_unread_only(self, client, student, as_user):
        notifications.notify([student.id], "system", "One", "body")
        notifications.mark_all_read(student.id)
        notifications.notify([student.id], "system", "Two", "body")
        response = client.get("/api/notifications", params={"unread_only": True}, headers=as_user(student))
        assert [n["title"] for n in response.json()["notifications"]] == ["Two"]


class TestAnnouncementEndpoints:
    def test_create_publish_and_read(self, client, admin, student, as_user):
        created = client.post(
            "/api/announcements",
            json={"title": "Maintenance", "content": "Sunday 2am", "priority": "high"},
            headers=as_user(admin),
        )
        assert created.status_code == 201
        announcement_id = created.json()["id"]

        assert client.get("/api/announcements", headers=as_user(student)).json() == []

        published = client.post(f"/api/announcements/{announcement_id}/publish", headers=as_user(admin))
        assert published.json()["is_published"] is True

        visible = client.get("/api/announcements", headers=as_user(student)).json()
        assert [a["title"] for a in visible] == ["Maintenance"]

    def test_students_cannot_announce(self, client, student, as_user):
        response = client.post("/api/announcements", json={"title": "t", "content": "c"}, headers=as_user(student))
        assert response.status_code == 403

    def test_global_needs_admin(self, client, instructor, as_user):
        response = client.post("/api/announcements", json={"title": "t", "content": "c"}, headers=as_user(instructor))
        assert response.status_code == 403


class TestHelpEndpoints:
    def test_public_reading_and_feedback(self, client, admin, as_user):
        created = client.post(
            "/api/help/articles",
            json={"title": "Refund Policy", "content": "30 days", "section": "website", "status": "published"},
            headers=as_user(admin),
        )
        assert created.status_code == 201
        article_id = created.json()["id"]

        listed = client.get("/api/help/articles", params={"section": "website"}).json()
        assert [a["slug"] for a in listed] == ["refund-policy"]

        viewed = client.get("/api/help/articles/refund-policy").json()
        assert viewed["view_count"] == 1

        voted = client.post(f"/api/help/articles/{article_id}/feedback", json={"is_helpful": True})
        assert voted.status_code == 200
        assert voted.json()["helpful_count"] == 1

    def test_instructor_limited_to_courses_section(self, client, instructor, as_user):
        website = client.post(
            "/api/help/categories",
            json={"name": "Billing", "section": "website"},
            headers=as_user(instructor),
        )
        assert website.status_code == 403
        courses = client.post(
            "/api/help/categories",
            json={"name": "Quizzes", "section": "courses"},
            headers=as_user(instructor),
        )
        assert courses.status_code == 201
        assert client.get("/api/help/categories", params={"section": "courses"}).json()[0]["slug"] == "quizzes"

    def test_draft_not_found_anonymously(self, client, admin, as_user):
        created = client.post(
            "/api/help/articles",
            json={"title": "Secret", "content": "wip", "section": "website"},
            headers=as_user(admin),
        ).json()
        assert client.get(f"/api/help/articles/{created['id']}").status_code == 404


class TestMeetingEndpoints:
    def test_token_only_on_join(self, client, instructor, student, course, as_user):
        client.post("/api/enrollments", json={"course_id": course.id}, headers=as_user(student))
        created = client.post(
            "/api/meetings",
            json={"title": "Live Q&A", "start_time": START, "course_id": course.id},
            headers=as_user(instructor),
        )
        assert created.status_code == 201
        meeting = created.json()
        assert "meeting_token" not in meeting

        listed = client.get("/api/meetings", headers=as_user(student)).json()
        assert [m["id"] for m in listed] == [meeting["id"]]

        joined = client.post(f"/api/meetings/{meeting['id']}/join", headers=as_user(student))
        assert joined.status_code == 200
        assert joined.json()["is_host"] is False
        assert joined.json()["meeting_token"].startswith("token-")

        room = client.get(f"/api/meetings/room/{meeting['room_name']}", headers=as_user(student))
        assert room.json()["id"] == meeting["id"]

    def test_status_and_delete(self, client, instructor, as_user):
        headers = as_user(instructor)
        meeting = client.post("/api/meetings", json={"title": "Demo", "start_time": START}, headers=headers).json()

        live = client.patch(f"/api/meetings/{meeting['id']}/status", json={"status": "live"}, headers=headers)
        assert live.json()["status"] == "live"

        assert client.delete(f"/api/meetings/{meeting['id']}", headers=headers).status_code == 204
        assert client.post(f"/api/meetings/{meeting['id']}/join", headers=headers).status_code == 404

    def test_recording(self, client, instructor, as_user):
        headers = as_user(instructor)
        meeting = client.post("/api/meetings", json={"title": "Demo", "start_time": START}, headers=headers).json()
        assert meeting["recording_url"] is None

        response = client.post(
            f"/api/meetings/{meeting['id']}/recording",
            json={"recording_url": "https://videos.example.com/demo.mp4"},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json()["recording_url"] == "https://videos.example.com/demo.mp4"
        assert response.json()["status"] == "ended"

        missing = client.post(f"/api/meetings/{meeting['id']}/recording", json={}, headers=headers)
        assert missing.status_code == 422

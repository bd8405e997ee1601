"""Tests for course endpoints (F1)."""


class TestCourseCatalogEndpoints:
    def test_public_listing_is_anonymous(self, client, course):
        response = client.get("/api/courses")
        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        listing = data["courses"][0]
        assert listing["course"]["title"] == "Python 101"
        assert listing["enrollment_count"] == 0
        assert listing["average_rating"] is None

    def test_detail_includes_curriculum(self, client, course):
        response = client.get(f"/api/courses/{course.id}")
        assert response.status_code == 200
        data = response.json()
        assert data["total_lessons"] == 2
        assert data["modules"][0]["module"]["title"] == "Getting started"

    def test_unknown_course(self, client):
        response = client.get("/api/courses/missing")
        assert response.status_code == 404
        assert response.json()["detail"] == "Course 'missing' not found"


class TestCourseAuthoring:
    def test_create_requires_instructor(self, client, student, as_user):
        response = client.post("/api/courses", json={"title": "Mine"}, headers=as_user(student))
        assert response.status_code == 403

    def test_create_and_publish(self, client, instructor, as_user):
        headers = as_user(instructor)
        created = client.post("/api/courses", json={"title": "Rust", "price": 25}, headers=headers)
        assert created.status_code == 201
        course_id = created.json()["id"]
        assert created.json()["status"] == "draft"

        # Drafts are invisible to anonymous callers
        assert client.get(f"/api/courses/{course_id}").status_code == 404
        assert client.get(f"/api/courses/{course_id}", headers=headers).status_code == 200

        published = client.post(f"/api/courses/{course_id}/publish", headers=headers)
        assert published.status_code == 200
        assert published.json()["status"] == "published"
        assert client.get(f"/api/courses/{course_id}").status_code == 200

    def test_mine_lists_drafts(self, client, instructor, as_user):
        client.post("/api/courses", json={"title": "Draft"}, headers=as_user(instructor))
        response = client.get("/api/courses/mine", headers=as_user(instructor))
        assert response.json()["count"] == 1

    def test_negative_price_is_rejected(self, client, instructor, as_user):
        response = client.post("/api/courses", json={"title": "Bad", "price": -1}, headers=as_user(instructor))
        assert response.status_code == 422

    def test_update_by_non_owner(self, client, course, admin, as_user):
        from lms.core.accounts import register_user

        rival = register_user("rival@example.com", "Rita", role="instructor", allow_admin=True)
        response = client.patch(f"/api/courses/{course.id}", json={"title": "Stolen"}, headers=as_user(rival))
        assert response.status_code == 403

        response = client.patch(f"/api/courses/{course.id}", json={"title": "Fixed"}, headers=as_user(admin))
        assert response.status_code == 200
        assert response.json()["title"] == "Fixed"

    def test_modules_and_lessons(self, client, instructor, as_user):
        headers = as_user(instructor)
        course_id = client.post("/api/courses", json={"title": "Go"}, headers=headers).json()["id"]

        module = client.post(f"/api/courses/{course_id}/modules", json={"title": "Intro"}, headers=headers)
        assert module.status_code == 201
        module_id = module.json()["id"]

        lesson = client.post(
            f"/api/courses/modules/{module_id}/lessons",
            json={"title": "Setup", "duration_minutes": 12},
            headers=headers,
        )
        assert lesson.status_code == 201
        lesson_id = lesson.json()["id"]

        renamed = client.patch(f"/api/courses/lessons/{lesson_id}", json={"title": "Tooling"}, headers=headers)
        assert renamed.json()["title"] == "Tooling"

        detail = client.get(f"/api/courses/{course_id}", headers=headers).json()
        assert detail["total_lessons"] == 1

        assert client.delete(f"/api/courses/lessons/{lesson_id}", headers=headers).status_code == 204
        assert client.delete(f"/api/courses/modules/{module_id}", headers=headers).status_code == 204
        detail = client.get(f"/api/courses/{course_id}", headers=headers).json()
        assert detail["modules"] == []

    def test_delete_course(self, client, course, instructor, as_user):
        response = client.delete(f"/api/courses/{course.id}", headers=as_user(instructor))
        assert response.status_code == 204
        assert client.get(f"/api/courses/{course.id}").status_code == 404

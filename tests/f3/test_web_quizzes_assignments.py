"""Tests for quiz and assignment endpoints (F3)."""

import pytest

QUIZ_BODY = {
    "title": "Warm-up",
    "passing_score": 50,
    "questions": [
        {
            "question_text": "2 + 2?",
            "options": [
                {"option_text": "4", "is_correct": True},
                {"option_text": "5"},
            ],
        }
    ],
}


@pytest.fixture
def enrolled(client, student, course, as_user):
    client.post("/api/enrollments", json={"course_id": course.id}, headers=as_user(student))
    return student


@pytest.fixture
def quiz_id(client, instructor, course, as_user):
    response = client.post("/api/quizzes", json={**QUIZ_BODY, "course_id": course.id}, headers=as_user(instructor))
    assert response.status_code == 201
    return response.json()["id"]


class TestQuizEndpoints:
    def test_instructor_sees_answer_key(self, client, quiz_id, instructor, as_user):
        quiz = client.get(f"/api/quizzes/{quiz_id}", headers=as_user(instructor)).json()
        flags = [o["is_correct"] for o in quiz["questions"][0]["options"]]
        assert flags == [True, False]

    def test_student_answer_key_hidden(self, client, quiz_id, enrolled, as_user):
        quiz = client.get(f"/api/quizzes/{quiz_id}", headers=as_user(enrolled)).json()
        assert all(o["is_correct"] is None for o in quiz["questions"][0]["options"])

    def test_outsider_forbidden(self, client, quiz_id, student, as_user):
        response = client.get(f"/api/quizzes/{quiz_id}", headers=as_user(student))
        assert response.status_code == 403

    def test_submit_and_list_attempts(self, client, quiz_id, instructor, enrolled, as_user):
        quiz = client.get(f"/api/quizzes/{quiz_id}", headers=as_user(instructor)).json()
        question = quiz["questions"][0]
        right = next(o["id"] for o in question["options"] if o["is_correct"])

        response = client.post(
            f"/api/quizzes/{quiz_id}/submit",
            json={"answers": {question["id"]: right}},
            headers=as_user(enrolled),
        )
        assert response.status_code == 200
        grade = response.json()
        assert grade["score"] == 100
        assert grade["passed"] is True
        assert grade["attempt_id"]

        attempts = client.get(f"/api/quizzes/{quiz_id}/attempts", headers=as_user(enrolled)).json()
        assert len(attempts) == 1
        assert attempts[0]["score"] == 100

    def test_quiz_without_questions_rejected(self, client, instructor, course, as_user):
        body = {**QUIZ_BODY, "course_id": course.id, "questions": []}
        response = client.post("/api/quizzes", json=body, headers=as_user(instructor))
        assert response.status_code == 422

    def test_course_quiz_list(self, client, quiz_id, enrolled, course, as_user):
        quizzes = client.get(f"/api/quizzes/course/{course.id}", headers=as_user(enrolled)).json()
        assert [q["id"] for q in quizzes] == [quiz_id]


class TestAssignmentEndpoints:
    def test_full_flow(self, client, instructor, enrolled, course, as_user):
        owner = as_user(instructor)
        learner = as_user(enrolled)

        created = client.post(
            "/api/assignments",
            json={"course_id": course.id, "title": "Essay", "max_points": 10, "is_published": True},
            headers=owner,
        )
        assert created.status_code == 201
        assignment_id = created.json()["id"]

        listed = client.get("/api/assignments", headers=learner).json()
        assert listed[0]["assignment"]["id"] == assignment_id
        assert listed[0]["my_submission"] is None

        submitted = client.post(
            f"/api/assignments/{assignment_id}/submit",
            json={"submission_text": "My essay"},
            headers=learner,
        )
        assert submitted.status_code == 200
        submission_id = submitted.json()["id"]

        submissions = client.get(f"/api/assignments/{assignment_id}/submissions", headers=owner).json()
        assert [s["id"] for s in submissions] == [submission_id]

        graded = client.post(
            f"/api/assignments/submissions/{submission_id}/grade",
            json={"score": 8, "feedback": "Good"},
            headers=owner,
        )
        assert graded.status_code == 200
        assert graded.json()["status"] == "graded"

        mine = client.get(f"/api/assignments/{assignment_id}/submission", headers=learner).json()
        assert mine["score"] == 8.0

        resubmit = client.post(
            f"/api/assignments/{assignment_id}/submit",
            json={"submission_text": "v2"},
            headers=learner,
        )
        assert resubmit.status_code == 400

    def test_draft_assignment_is_not_found_for_students(self, client, instructor, enrolled, course, as_user):
        created = client.post(
            "/api/assignments",
            json={"course_id": course.id, "title": "Hidden"},
            headers=as_user(instructor),
        ).json()
        response = client.get(f"/api/assignments/{created['id']}", headers=as_user(enrolled))
        assert response.status_code == 404

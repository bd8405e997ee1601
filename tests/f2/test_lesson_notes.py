"""Tests for lesson notes and questions (F2)."""

import pytest

from lms.core import enrollment, lesson_notes
from lms.core.accounts import register_user
from lms.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from lms.core.notifications import list_for_user


@pytest.fixture
def enrolled(student, course):
    return enrollment.enroll_student(student, course.id)


@pytest.fixture
def question(enrolled, student, lesson_ids):
    return lesson_notes.create_note(student, lesson_ids[0], "Which Python version?", is_question=True)


class TestNotes:
    def test_create_and_list_newest_first(self, enrolled, student, lesson_ids):
        first = lesson_notes.create_note(student, lesson_ids[0], "Install 3.12")
        second = lesson_notes.create_note(student, lesson_ids[0], "  Use a venv  ")
        assert second.content == "Use a venv"
        assert not first.is_question
        assert [n.id for n in lesson_notes.list_my_notes(student, lesson_ids[0])] == [second.id, first.id]

    def test_notes_are_private(self, enrolled, student, other_student, course, lesson_ids):
        lesson_notes.create_note(student, lesson_ids[0], "Mine")
        enrollment.enroll_student(other_student, course.id)
        assert lesson_notes.list_my_notes(other_student, lesson_ids[0]) == []

    def test_requires_enrollment(self, student, lesson_ids):
        with pytest.raises(PermissionDeniedError):
            lesson_notes.create_note(student, lesson_ids[0], "Sneaky")

    def test_content_required(self, enrolled, student, lesson_ids):
        with pytest.raises(ValidationError):
            lesson_notes.create_note(student, lesson_ids[0], "   ")

    def test_unknown_lesson(self, enrolled, student):
        with pytest.raises(NotFoundError):
            lesson_notes.create_note(student, "missing", "Hello")

    def test_delete_own_only(self, question, student, instructor, lesson_ids):
        with pytest.raises(PermissionDeniedError):
            lesson_notes.delete_note(instructor, question.id)
        lesson_notes.delete_note(student, question.id)
        assert lesson_notes.list_my_notes(student, lesson_ids[0]) == []


class TestQuestions:
    def test_instructor_sees_questions_only(self, question, enrolled, student, instructor, course, lesson_ids):
        lesson_notes.create_note(student, lesson_ids[1], "Private thought")
        assert [n.id for n in lesson_notes.list_course_questions(instructor, course.id)] == [question.id]

    def test_other_instructor_denied(self, question, course):
        rival = register_user("rival@example.com", "Rita", role="instructor", allow_admin=True)
        with pytest.raises(PermissionDeniedError):
            lesson_notes.list_course_questions(rival, course.id)

    def test_reply_thread_and_notification(self, question, instructor, student, lesson_ids):
        lesson_notes.reply_to_note(instructor, question.id, "3.12 or newer")
        lesson_notes.reply_to_note(student, question.id, "Thanks!")

        [note] = lesson_notes.list_my_notes(student, lesson_ids[0])
        assert [r.content for r in note.replies] == ["3.12 or newer", "Thanks!"]
        assert [n.type for n in list_for_user(student.id)].count("note_reply") == 1

    def test_unanswered_filter(self, question, instructor, student, course, lesson_ids):
        other = lesson_notes.create_note(student, lesson_ids[1], "Is there a quiz?", is_question=True)
        lesson_notes.reply_to_note(instructor, question.id, "3.12")
        unanswered = lesson_notes.list_course_questions(instructor, course.id, unanswered_only=True)
        assert [n.id for n in unanswered] == [other.id]

    def test_plain_note_hidden_from_instructor(self, enrolled, student, instructor, lesson_ids):
        note = lesson_notes.create_note(student, lesson_ids[0], "Private")
        with pytest.raises(NotFoundError):
            lesson_notes.reply_to_note(instructor, note.id, "Peek")

    def test_classmates_cannot_reply(self, question, other_student):
        with pytest.raises(NotFoundError):
            lesson_notes.reply_to_note(other_student, question.id, "Me too")

    def test_empty_reply(self, question, instructor):
        with pytest.raises(ValidationError):
            lesson_notes.reply_to_note(instructor, question.id, " ")


class TestNoteEndpoints:
    def test_note_flow(self, client, enrolled, student, instructor, course, lesson_ids, as_user):
        created = client.post(
            f"/api/courses/lessons/{lesson_ids[0]}/notes",
            json={"content": "How do I install?", "is_question": True},
            headers=as_user(student),
        )
        assert created.status_code == 201
        note_id = created.json()["id"]

        questions = client.get(f"/api/courses/{course.id}/questions", headers=as_user(instructor)).json()
        assert [q["id"] for q in questions] == [note_id]

        reply = client.post(
            f"/api/courses/notes/{note_id}/replies",
            json={"content": "Use the installer"},
            headers=as_user(instructor),
        )
        assert reply.status_code == 201

        mine = client.get(f"/api/courses/lessons/{lesson_ids[0]}/notes", headers=as_user(student)).json()
        assert mine[0]["replies"][0]["content"] == "Use the installer"

        assert client.delete(f"/api/courses/notes/{note_id}", headers=as_user(student)).status_code == 204

    def test_not_enrolled(self, client, student, course, lesson_ids, as_user):
        response = client.post(
            f"/api/courses/lessons/{lesson_ids[0]}/notes",
            json={"content": "Hi"},
            headers=as_user(student),
        )
        assert response.status_code == 403

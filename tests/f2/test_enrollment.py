"""Tests for enrollment, progress, certificates and ratings (F2)."""

import re

import pytest

from lms.core import catalog, enrollment
from lms.core.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from lms.core.notifications import list_for_user


class TestEnrollStudent:
    def test_enroll_published_course(self, student, course):
        record = enrollment.enroll_student(student, course.id)
        assert record.progress_percentage == 0
        assert enrollment.enrollment_status(student, course.id) == {
            "enrolled": True,
            "progress_percentage": 0,
        }

    def test_enroll_notifies_student(self, student, course):
        enrollment.enroll_student(student, course.id)
        assert [n.type for n in list_for_user(student.id)] == ["course_added"]

    def test_double_enrollment_conflicts(self, student, course):
        enrollment.enroll_student(student, course.id)
        with pytest.raises(ConflictError):
            enrollment.enroll_student(student, course.id)

    def test_draft_course_not_enrollable(self, student, instructor):
        draft = catalog.create_course(instructor, title="Soon")
        with pytest.raises(NotFoundError):
            enrollment.enroll_student(student, draft.id)

    def test_list_my_enrollments(self, student, course):
        enrollment.enroll_student(student, course.id)
        rows = enrollment.list_my_enrollments(student)
        assert [(e.course_id, c.title) for e, c in rows] == [(course.id, "Python 101")]


class TestLessonProgress:
    """Progress is completed lessons over all lessons in the course."""

    def test_requires_enrollment(self, student, course, lesson_ids):
        with pytest.raises(PermissionDeniedError):
            enrollment.update_lesson_progress(student, course.id, lesson_ids[0])

    def test_half_done(self, student, course, lesson_ids):
        enrollment.enroll_student(student, course.id)
        result = enrollment.update_lesson_progress(student, course.id, lesson_ids[0])
        assert result.progress_percentage == 50
        assert result.completed_lessons == 1
        assert result.total_lessons == 2
        assert result.modules == 1
        assert not result.certificate_generated

    def test_repeat_completion_is_idempotent(self, student, course, lesson_ids):
        enrollment.enroll_student(student, course.id)
        enrollment.update_lesson_progress(student, course.id, lesson_ids[0])
        result = enrollment.update_lesson_progress(student, course.id, lesson_ids[0])
        assert result.progress_percentage == 50

    def test_uncomplete_lowers_progress(self, student, course, lesson_ids):
        enrollment.enroll_student(student, course.id)
        enrollment.update_lesson_progress(student, course.id, lesson_ids[0])
        result = enrollment.update_lesson_progress(student, course.id, lesson_ids[0], completed=False)
        assert result.progress_percentage == 0

    def test_lesson_from_other_course(self, student, course, instructor):
        other = catalog.create_course(instructor, title="Other")
        module = catalog.create_module(instructor, other.id, "M")
        foreign = catalog.create_lesson(instructor, module.id, "Foreign")
        enrollment.enroll_student(student, course.id)
        with pytest.raises(NotFoundError):
            enrollment.update_lesson_progress(student, course.id, foreign.id)

    def test_rounds_half_up(self, student, instructor):
        record = catalog.create_course(instructor, title="Thirds")
        module = catalog.create_module(instructor, record.id, "M")
        lessons = [catalog.create_lesson(instructor, module.id, f"L{i}") for i in range(3)]
        catalog.publish_course(instructor, record.id)
        enrollment.enroll_student(student, record.id)

        first = enrollment.update_lesson_progress(student, record.id, lessons[0].id)
        second = enrollment.update_lesson_progress(student, record.id, lessons[1].id)
        assert first.progress_percentage == 33
        assert second.progress_percentage == 67

    def test_completed_lessons(self, student, course, lesson_ids):
        enrollment.enroll_student(student, course.id)
        enrollment.update_lesson_progress(student, course.id, lesson_ids[1])
        assert enrollment.completed_lessons(student, course.id) == [lesson_ids[1]]


class TestCertificates:
    def _complete(self, student, course, lesson_ids):
        enrollment.enroll_student(student, course.id)
        results = [enrollment.update_lesson_progress(student, course.id, lid) for lid in lesson_ids]
        return results[-1]

    def test_completion_issues_certificate(self, student, course, lesson_ids):
        result = self._complete(student, course, lesson_ids)
        assert result.progress_percentage == 100
        assert result.certificate_generated

        certificates = enrollment.list_my_certificates(student)
        assert len(certificates) == 1
        assert re.fullmatch(r"CERT-\d+-[A-Z0-9]{9}", certificates[0].certificate_number)

    def test_completion_notifications(self, student, course, lesson_ids):
        self._complete(student, course, lesson_ids)
        types = {n.type for n in list_for_user(student.id)}
        assert {"course_completed", "certificate_earned"} <= types

    def test_certificate_issued_once(self, student, course, lesson_ids):
        self._complete(student, course, lesson_ids)
        enrollment.update_lesson_progress(student, course.id, lesson_ids[0], completed=False)
        again = enrollment.update_lesson_progress(student, course.id, lesson_ids[0])
        assert not again.certificate_generated
        assert len(enrollment.list_my_certificates(student)) == 1

    def test_issue_returns_existing(self, student, course, lesson_ids):
        self._complete(student, course, lesson_ids)
        existing = enrollment.list_my_certificates(student)[0]
        assert enrollment.issue_certificate(student, course.id).id == existing.id

    def test_issue_before_completion(self, student, course):
        enrollment.enroll_student(student, course.id)
        with pytest.raises(ValidationError):
            enrollment.issue_certificate(student, course.id)

    def test_verify_certificate(self, student, course, lesson_ids):
        self._complete(student, course, lesson_ids)
        number = enrollment.list_my_certificates(student)[0].certificate_number
        verified = enrollment.verify_certificate(number)
        assert verified["student_name"] == "Sam Student"
        assert verified["course_title"] == "Python 101"

    def test_verify_unknown(self, db):
        with pytest.raises(NotFoundError):
            enrollment.verify_certificate("CERT-0-NOPE")


class TestRatings:
    def _complete(self, student, course, lesson_ids):
        enrollment.enroll_student(student, course.id)
        for lesson_id in lesson_ids:
            enrollment.update_lesson_progress(student, course.id, lesson_id)

    def test_must_complete_first(self, student, course):
        enrollment.enroll_student(student, course.id)
        with pytest.raises(PermissionDeniedError):
            enrollment.rate_course(student, course.id, 5)

    def test_must_be_enrolled(self, student, course):
        with pytest.raises(PermissionDeniedError):
            enrollment.rate_course(student, course.id, 5)

    @pytest.mark.parametrize("value", [0, 6, True])
    def test_out_of_range(self, student, course, value):
        with pytest.raises(ValidationError):
            enrollment.rate_course(student, course.id, value)

    def test_rating_is_updatable(self, student, course, lesson_ids):
        self._complete(student, course, lesson_ids)
        enrollment.rate_course(student, course.id, 3, "ok")
        enrollment.rate_course(student, course.id, 5, "  great  ")
        mine = enrollment.get_my_rating(student, course.id)
        assert mine.rating == 5
        assert mine.review == "great"
        assert enrollment.rating_summary(course.id) == {"average_rating": 5.0, "rating_count": 1}

    def test_average_across_students(self, student, other_student, course, lesson_ids):
        self._complete(student, course, lesson_ids)
        self._complete(other_student, course, lesson_ids)
        enrollment.rate_course(student, course.id, 4)
        enrollment.rate_course(other_student, course.id, 5)
        assert enrollment.rating_summary(course.id) == {"average_rating": 4.5, "rating_count": 2}


class TestInstructorView:
    def test_student_progress_rows(self, instructor, student, course, lesson_ids):
        enrollment.enroll_student(student, course.id)
        enrollment.update_lesson_progress(student, course.id, lesson_ids[0])
        rows = enrollment.instructor_student_progress(instructor)
        assert len(rows) == 1
        assert rows[0].student_email == "stu@example.com"
        assert rows[0].progress_percentage == 50

    def test_course_students_requires_manager(self, student, course):
        with pytest.raises(PermissionDeniedError):
            enrollment.course_students(student, course.id)

"""Quiz authoring and grading.

Responsibilities:
- Create quizzes with multiple-choice questions (course managers)
- Serve quizzes to enrolled students without the answer key
- Auto-grade submitted answers and persist attempts

Scoring:
- score = round_half_up(correct / max(question_count, 1) * 100)
- passed = score >= passing_score
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from lms.core.catalog import can_manage, get_course, require_course_manager
from lms.core.enrollment import require_enrollment
from lms.core.errors import NotFoundError, ValidationError
from lms.core.notifications import notify_best_effort
from lms.db import courses_repository, quizzes_repository
from lms.db.profiles_repository import ProfileRecord
from lms.db.quizzes_repository import AttemptRecord, QuizRecord
from lms.utils.validators import round_half_up

logger = structlog.get_logger(__name__)

# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class QuestionGrade:
    """Grade for a single question."""

    question_id: str
    selected_option_id: str | None
    correct_option_ids: list[str]
    is_correct: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "question_id": self.question_id,
            "selected_option_id": self.selected_option_id,
            "correct_option_ids": self.correct_option_ids,
            "is_correct": self.is_correct,
        }


@dataclass
class QuizGrade:
    """Result of grading one submission."""

    quiz_id: str
    score: int
    passed: bool
    correct_count: int
    total_questions: int
    passing_score: int
    results: list[QuestionGrade] = field(default_factory=list)
    attempt_id: str | None = None


# =============================================================================
# AUTHORING
# =============================================================================


def create_quiz(
    user: ProfileRecord,
    course_id: str,
    title: str,
    questions: list[dict[str, Any]],
    description: str = "",
    passing_score: int = 70,
    lesson_id: str | None = None,
) -> QuizRecord:
    """Create a quiz in a course the user manages.

    Each question needs text, at least two options and at least one correct
    option.
    """
    require_course_manager(user, course_id)

    if not title or not title.strip():
        raise ValidationError("Quiz title is required")
    if not 0 <= passing_score <= 100:
        raise ValidationError("passing_score must be between 0 and 100")
    if not questions:
        raise ValidationError("A quiz needs at least one question")
    if lesson_id is not None and courses_repository.get_lesson_course_id(lesson_id) != course_id:
        raise ValidationError("Lesson does not belong to this course")

    for number, question in enumerate(questions, start=1):
        if not str(question.get("question_text", "")).strip():
            raise ValidationError(f"Question {number} has no text")
        options = question.get("options") or []
        if len(options) < 2:
            raise ValidationError(f"Question {number} needs at least two options")
        if not any(option.get("is_correct") for option in options):
            raise ValidationError(f"Question {number} has no correct option")

    quiz = quizzes_repository.insert_quiz(
        course_id=course_id,
        title=title.strip(),
        questions=questions,
        description=description,
        passing_score=passing_score,
        lesson_id=lesson_id,
    )
    logger.info("quizzes.created", quiz_id=quiz.id, course_id=course_id, questions=len(questions))
    return quiz


def delete_quiz(user: ProfileRecord, quiz_id: str) -> None:
    quiz = _get_quiz(quiz_id, with_questions=False)
    require_course_manager(user, quiz.course_id)
    quizzes_repository.delete_quiz(quiz_id)


def list_course_quizzes(user: ProfileRecord, course_id: str) -> list[QuizRecord]:
    course = get_course(course_id)
    if not can_manage(user, course):
        require_enrollment(user.id, course_id)
    return quizzes_repository.list_course_quizzes(course_id)


def get_quiz_for_user(user: ProfileRecord, quiz_id: str) -> tuple[QuizRecord, bool]:
    """Quiz plus whether the answer key may be shown to this user."""
    quiz = _get_quiz(quiz_id)
    course = get_course(quiz.course_id)
    if can_manage(user, course):
        return quiz, True

    require_enrollment(user.id, quiz.course_id)
    return quiz, False


# =============================================================================
# GRADING
# =============================================================================


def grade_answers(quiz: QuizRecord, answers: dict[str, str]) -> QuizGrade:
    """Grade answers ({question_id: option_id}) against a quiz.

    Unanswered questions count as wrong. Answers to unknown questions are
    ignored.
    """
    results: list[QuestionGrade] = []
    for question in quiz.questions:
        correct_ids = [option.id for option in question.options if option.is_correct]
        selected = answers.get(question.id)
        results.append(
            QuestionGrade(
                question_id=question.id,
                selected_option_id=selected,
                correct_option_ids=correct_ids,
                is_correct=selected is not None and selected in correct_ids,
            )
        )

    correct = sum(1 for result in results if result.is_correct)
    total = len(quiz.questions)
    score = round_half_up(correct / max(total, 1) * 100)

    return QuizGrade(
        quiz_id=quiz.id,
        score=score,
        passed=score >= quiz.passing_score,
        correct_count=correct,
        total_questions=total,
        passing_score=quiz.passing_score,
        results=results,
    )


def submit_quiz(student: ProfileRecord, quiz_id: str, answers: dict[str, str]) -> QuizGrade:
    """Grade and store an attempt for an enrolled student."""
    quiz = _get_quiz(quiz_id)
    require_enrollment(student.id, quiz.course_id)

    grade = grade_answers(quiz, answers)
    attempt = quizzes_repository.insert_attempt(
        quiz_id=quiz.id,
        student_id=student.id,
        score=grade.score,
        passed=grade.passed,
        answers=[result.to_dict() for result in grade.results],
    )
    grade.attempt_id = attempt.id

    logger.info(
        "quizzes.graded",
        quiz_id=quiz.id,
        student_id=student.id,
        score=grade.score,
        passed=grade.passed,
    )

    outcome = "passed" if grade.passed else "did not pass"
    notify_best_effort(
        [student.id],
        "quiz_graded",
        "Quiz Graded",
        f'You scored {grade.score}% on "{quiz.title}" and {outcome}.',
        link=f"/student/quizzes/{quiz.id}",
        related_id=quiz.id,
        related_type="quiz",
    )
    return grade


def list_attempts(student: ProfileRecord, quiz_id: str) -> list[AttemptRecord]:
    _get_quiz(quiz_id, with_questions=False)
    return quizzes_repository.list_attempts(quiz_id, student.id)


def _get_quiz(quiz_id: str, with_questions: bool = True) -> QuizRecord:
    quiz = quizzes_repository.get_quiz(quiz_id, with_questions=with_questions)
    if quiz is None:
        raise NotFoundError("Quiz", quiz_id)
    return quiz

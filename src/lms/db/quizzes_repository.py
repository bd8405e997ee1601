"""Repository functions for quizzes, questions, options and attempts."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import structlog

from lms.db.database import get_db
from lms.utils.validators import new_id, utc_now_iso

logger = structlog.get_logger(__name__)


@dataclass
class OptionRecord:
    id: str
    question_id: str
    option_text: str
    is_correct: bool
    order_index: int


@dataclass
class QuestionRecord:
    id: str
    quiz_id: str
    question_text: str
    order_index: int
    options: list[OptionRecord] = field(default_factory=list)


@dataclass
class QuizRecord:
    """Quiz with its questions (loaded on demand)."""

    id: str
    course_id: str
    lesson_id: str | None
    title: str
    description: str
    passing_score: int
    created_at: str
    questions: list[QuestionRecord] = field(default_factory=list)


@dataclass
class AttemptRecord:
    """Quiz attempt record from database."""

    id: str
    quiz_id: str
    student_id: str
    score: int
    passed: bool
    answers: list[dict[str, Any]]
    attempted_at: str


def insert_quiz(
    course_id: str,
    title: str,
    questions: list[dict[str, Any]],
    description: str = "",
    passing_score: int = 70,
    lesson_id: str | None = None,
) -> QuizRecord:
    """Insert a quiz with its questions and options in one transaction.

    Args:
        course_id: Owning course
        title: Quiz title
        questions: [{"question_text": str, "options": [{"option_text": str,
            "is_correct": bool}, ...]}, ...] in display order
        description: Optional description
        passing_score: Minimum percentage to pass
        lesson_id: Optional lesson the quiz belongs to

    Returns:
        The stored QuizRecord with questions
    """
    quiz_id = new_id()

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO quizzes (id, course_id, lesson_id, title, description, passing_score, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (quiz_id, course_id, lesson_id, title, description, passing_score, utc_now_iso()),
        )
        for q_index, question in enumerate(questions):
            question_id = new_id()
            conn.execute(
                """
                INSERT INTO quiz_questions (id, quiz_id, question_text, order_index)
                VALUES (?, ?, ?, ?)
                """,
                (question_id, quiz_id, question["question_text"], q_index),
            )
            for o_index, option in enumerate(question.get("options", [])):
                conn.execute(
                    """
                    INSERT INTO quiz_options (id, question_id, option_text, is_correct, order_index)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        new_id(),
                        question_id,
                        option["option_text"],
                        int(bool(option.get("is_correct"))),
                        o_index,
                    ),
                )

    logger.debug("quizzes.inserted", quiz_id=quiz_id, questions=len(questions))
    return get_quiz(quiz_id)


def get_quiz(quiz_id: str, with_questions: bool = True) -> QuizRecord | None:
    """Get quiz by id, optionally with questions and options."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM quizzes WHERE id = ?", (quiz_id,)).fetchone()
        if row is None:
            return None
        quiz = _row_to_quiz(row)
        if with_questions:
            quiz.questions = _load_questions(conn, quiz_id)

    return quiz


def list_course_quizzes(course_id: str) -> list[QuizRecord]:
    """Quizzes of a course (without questions)."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM quizzes WHERE course_id = ? ORDER BY created_at",
            (course_id,),
        ).fetchall()

    return [_row_to_quiz(row) for row in rows]


def delete_quiz(quiz_id: str) -> bool:
    """Delete quiz and its questions, options and attempts."""
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM quizzes WHERE id = ?", (quiz_id,))

    return cursor.rowcount > 0


def insert_attempt(
    quiz_id: str,
    student_id: str,
    score: int,
    passed: bool,
    answers: list[dict[str, Any]],
) -> AttemptRecord:
    """Store a graded attempt."""
    record = AttemptRecord(
        id=new_id(),
        quiz_id=quiz_id,
        student_id=student_id,
        score=score,
        passed=passed,
        answers=answers,
        attempted_at=utc_now_iso(),
    )

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO quiz_attempts (id, quiz_id, student_id, score, passed, answers, attempted_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.id,
                record.quiz_id,
                record.student_id,
                record.score,
                int(record.passed),
                json.dumps(record.answers),
                record.attempted_at,
            ),
        )

    logger.debug("quiz_attempts.inserted", quiz_id=quiz_id, score=score, passed=passed)
    return record


def list_attempts(quiz_id: str, student_id: str) -> list[AttemptRecord]:
    """Attempts of a student on a quiz, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM quiz_attempts WHERE quiz_id = ? AND student_id = ?
            ORDER BY attempted_at DESC
            """,
            (quiz_id, student_id),
        ).fetchall()

    return [_row_to_attempt(row) for row in rows]


def _load_questions(conn, quiz_id: str) -> list[QuestionRecord]:
    questions = [
        QuestionRecord(
            id=row["id"],
            quiz_id=row["quiz_id"],
            question_text=row["question_text"],
            order_index=row["order_index"],
        )
        for row in conn.execute(
            "SELECT * FROM quiz_questions WHERE quiz_id = ? ORDER BY order_index",
            (quiz_id,),
        ).fetchall()
    ]
    by_id = {q.id: q for q in questions}

    option_rows = conn.execute(
        """
        SELECT o.* FROM quiz_options o
        JOIN quiz_questions q ON q.id = o.question_id
        WHERE q.quiz_id = ?
        ORDER BY o.order_index
        """,
        (quiz_id,),
    ).fetchall()
    for row in option_rows:
        by_id[row["question_id"]].options.append(
            OptionRecord(
                id=row["id"],
                question_id=row["question_id"],
                option_text=row["option_text"],
                is_correct=bool(row["is_correct"]),
                order_index=row["order_index"],
            )
        )

    return questions


def _row_to_quiz(row) -> QuizRecord:
    return QuizRecord(
        id=row["id"],
        course_id=row["course_id"],
        lesson_id=row["lesson_id"],
        title=row["title"],
        description=row["description"],
        passing_score=row["passing_score"],
        created_at=row["created_at"],
    )


def _row_to_attempt(row) -> AttemptRecord:
    return AttemptRecord(
        id=row["id"],
        quiz_id=row["quiz_id"],
        student_id=row["student_id"],
        score=row["score"],
        passed=bool(row["passed"]),
        answers=json.loads(row["answers"]),
        attempted_at=row["attempted_at"],
    )

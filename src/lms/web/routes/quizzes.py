"""Quiz endpoints."""

from fastapi import APIRouter, Depends, status

from lms.core import quiz_grader
from lms.db.profiles_repository import ProfileRecord
from lms.db.quizzes_repository import QuizRecord
from lms.web.dependencies import get_current_user, require_instructor, require_student
from lms.web.schemas import (
    AttemptResponse,
    OptionResponse,
    QuestionResponse,
    QuizCreate,
    QuizGradeResponse,
    QuizResponse,
    QuizSubmission,
)

router = APIRouter(prefix="/api/quizzes", tags=["quizzes"])


def _to_response(quiz: QuizRecord, show_answers: bool) -> QuizResponse:
    """Serialize a quiz; correctness flags only when show_answers."""
    return QuizResponse(
        id=quiz.id,
        course_id=quiz.course_id,
        lesson_id=quiz.lesson_id,
        title=quiz.title,
        description=quiz.description,
        passing_score=quiz.passing_score,
        created_at=quiz.created_at,
        questions=[
            QuestionResponse(
                id=q.id,
                question_text=q.question_text,
                order_index=q.order_index,
                options=[
                    OptionResponse(
                        id=o.id,
                        option_text=o.option_text,
                        order_index=o.order_index,
                        is_correct=o.is_correct if show_answers else None,
                    )
                    for o in q.options
                ],
            )
            for q in quiz.questions
        ],
    )


@router.post("", response_model=QuizResponse, status_code=status.HTTP_201_CREATED)
async def create_quiz(body: QuizCreate, user: ProfileRecord = Depends(require_instructor)) -> QuizResponse:
    quiz = quiz_grader.create_quiz(
        user,
        course_id=body.course_id,
        title=body.title,
        questions=[q.model_dump() for q in body.questions],
        description=body.description,
        passing_score=body.passing_score,
        lesson_id=body.lesson_id,
    )
    return _to_response(quiz, show_answers=True)


@router.get("/course/{course_id}", response_model=list[QuizResponse])
async def list_course_quizzes(course_id: str, user: ProfileRecord = Depends(get_current_user)) -> list[QuizResponse]:
    """Quizzes of a course, without questions."""
    return [_to_response(q, show_answers=False) for q in quiz_grader.list_course_quizzes(user, course_id)]


@router.get("/{quiz_id}", response_model=QuizResponse)
async def get_quiz(quiz_id: str, user: ProfileRecord = Depends(get_current_user)) -> QuizResponse:
    quiz, show_answers = quiz_grader.get_quiz_for_user(user, quiz_id)
    return _to_response(quiz, show_answers)


@router.delete("/{quiz_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_quiz(quiz_id: str, user: ProfileRecord = Depends(require_instructor)) -> None:
    quiz_grader.delete_quiz(user, quiz_id)


@router.post("/{quiz_id}/submit", response_model=QuizGradeResponse)
async def submit_quiz(
    quiz_id: str,
    body: QuizSubmission,
    user: ProfileRecord = Depends(require_student),
) -> QuizGradeResponse:
    return QuizGradeResponse.model_validate(quiz_grader.submit_quiz(user, quiz_id, body.answers))


@router.get("/{quiz_id}/attempts", response_model=list[AttemptResponse])
async def list_attempts(quiz_id: str, user: ProfileRecord = Depends(require_student)) -> list[AttemptResponse]:
    return [AttemptResponse.model_validate(a) for a in quiz_grader.list_attempts(user, quiz_id)]

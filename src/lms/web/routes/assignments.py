"""Assignment and submission endpoints."""

from fastapi import APIRouter, Depends, status

from lms.core import assignments
from lms.db.profiles_repository import ProfileRecord
from lms.web.dependencies import get_current_user, require_instructor, require_student
from lms.web.schemas import (
    AssignmentCreate,
    AssignmentResponse,
    AssignmentUpdate,
    AssignmentViewResponse,
    GradeRequest,
    SubmissionCreate,
    SubmissionResponse,
)

router = APIRouter(prefix="/api/assignments", tags=["assignments"])


@router.get("", response_model=list[AssignmentViewResponse])
async def list_assignments(
    course_id: str | None = None,
    user: ProfileRecord = Depends(get_current_user),
) -> list[AssignmentViewResponse]:
    """Instructors get submission counts, students their own submission."""
    return [AssignmentViewResponse.model_validate(v) for v in assignments.list_for_user(user, course_id)]


@router.post("", response_model=AssignmentResponse, status_code=status.HTTP_201_CREATED)
async def create_assignment(
    body: AssignmentCreate,
    user: ProfileRecord = Depends(require_instructor),
) -> AssignmentResponse:
    return AssignmentResponse.model_validate(assignments.create_assignment(user, **body.model_dump()))


@router.get("/{assignment_id}", response_model=AssignmentResponse)
async def get_assignment(assignment_id: str, user: ProfileRecord = Depends(get_current_user)) -> AssignmentResponse:
    return AssignmentResponse.model_validate(assignments.get_visible_assignment(user, assignment_id))


@router.patch("/{assignment_id}", response_model=AssignmentResponse)
async def update_assignment(
    assignment_id: str,
    body: AssignmentUpdate,
    user: ProfileRecord = Depends(require_instructor),
) -> AssignmentResponse:
    changes = body.model_dump(exclude_unset=True)
    return AssignmentResponse.model_validate(assignments.update_assignment(user, assignment_id, changes))


@router.delete("/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_assignment(assignment_id: str, user: ProfileRecord = Depends(require_instructor)) -> None:
    assignments.delete_assignment(user, assignment_id)


@router.post("/{assignment_id}/submit", response_model=SubmissionResponse)
async def submit_assignment(
    assignment_id: str,
    body: SubmissionCreate,
    user: ProfileRecord = Depends(require_student),
) -> SubmissionResponse:
    submission = assignments.submit_assignment(user, assignment_id, body.submission_text, body.file_url)
    return SubmissionResponse.model_validate(submission)


@router.get("/{assignment_id}/submissions", response_model=list[SubmissionResponse])
async def list_submissions(
    assignment_id: str,
    user: ProfileRecord = Depends(require_instructor),
) -> list[SubmissionResponse]:
    return [SubmissionResponse.model_validate(s) for s in assignments.list_submissions(user, assignment_id)]


@router.get("/{assignment_id}/submission", response_model=SubmissionResponse | None)
async def my_submission(
    assignment_id: str,
    user: ProfileRecord = Depends(require_student),
) -> SubmissionResponse | None:
    submission = assignments.get_my_submission(user, assignment_id)
    return SubmissionResponse.model_validate(submission) if submission else None


@router.post("/submissions/{submission_id}/grade", response_model=SubmissionResponse)
async def grade_submission(
    submission_id: str,
    body: GradeRequest,
    user: ProfileRecord = Depends(require_instructor),
) -> SubmissionResponse:
    """Grade a submission; scores outside [0, max_points] are clamped."""
    graded = assignments.grade_submission(user, submission_id, body.score, body.feedback)
    return SubmissionResponse.model_validate(graded)

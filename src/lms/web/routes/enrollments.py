"""Enrollment, lesson progress and certificate endpoints."""

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from lms.core import enrollment
from lms.db.profiles_repository import ProfileRecord
from lms.web.dependencies import require_feature, require_instructor, require_student
from lms.web.schemas import (
    CertificateResponse,
    CertificateVerification,
    CompletedLessonsResponse,
    CourseResponse,
    EnrollmentResponse,
    EnrollmentStatusResponse,
    EnrollmentWithCourse,
    ProgressResponse,
    ProgressUpdate,
    StudentProgressResponse,
)

router = APIRouter(prefix="/api/enrollments", tags=["enrollments"])

certificates_enabled = [Depends(require_feature("certificates"))]


class EnrollRequest(BaseModel):
    course_id: str


@router.post("", response_model=EnrollmentResponse, status_code=status.HTTP_201_CREATED)
async def enroll(body: EnrollRequest, user: ProfileRecord = Depends(require_student)) -> EnrollmentResponse:
    """Enroll in a published course directly (free access path)."""
    return EnrollmentResponse.model_validate(enrollment.enroll_student(user, body.course_id))


@router.get("", response_model=list[EnrollmentWithCourse])
async def list_my_enrollments(user: ProfileRecord = Depends(require_student)) -> list[EnrollmentWithCourse]:
    return [
        EnrollmentWithCourse(
            enrollment=EnrollmentResponse.model_validate(record),
            course=CourseResponse.model_validate(course),
        )
        for record, course in enrollment.list_my_enrollments(user)
    ]


@router.get("/students", response_model=list[StudentProgressResponse])
async def instructor_students(user: ProfileRecord = Depends(require_instructor)) -> list[StudentProgressResponse]:
    """Students across the caller's courses with their progress."""
    return [StudentProgressResponse.model_validate(row) for row in enrollment.instructor_student_progress(user)]


@router.get("/certificates", response_model=list[CertificateResponse], dependencies=certificates_enabled)
async def list_my_certificates(user: ProfileRecord = Depends(require_student)) -> list[CertificateResponse]:
    return [CertificateResponse.model_validate(c) for c in enrollment.list_my_certificates(user)]


@router.get(
    "/certificates/verify/{certificate_number}",
    response_model=CertificateVerification,
    dependencies=certificates_enabled,
)
async def verify_certificate(certificate_number: str) -> CertificateVerification:
    """Public certificate lookup."""
    return CertificateVerification(**enrollment.verify_certificate(certificate_number))


@router.get("/status/{course_id}", response_model=EnrollmentStatusResponse)
async def enrollment_status(course_id: str, user: ProfileRecord = Depends(require_student)) -> EnrollmentStatusResponse:
    return EnrollmentStatusResponse(**enrollment.enrollment_status(user, course_id))


@router.post("/{course_id}/progress", response_model=ProgressResponse)
async def update_progress(
    course_id: str,
    body: ProgressUpdate,
    user: ProfileRecord = Depends(require_student),
) -> ProgressResponse:
    """Mark a lesson (not) completed and recompute course progress."""
    result = enrollment.update_lesson_progress(user, course_id, body.lesson_id, body.completed)
    return ProgressResponse.model_validate(result)


@router.get("/{course_id}/progress", response_model=CompletedLessonsResponse)
async def completed_lessons(course_id: str, user: ProfileRecord = Depends(require_student)) -> CompletedLessonsResponse:
    return CompletedLessonsResponse(lesson_ids=enrollment.completed_lessons(user, course_id))


@router.post("/{course_id}/certificate", response_model=CertificateResponse, dependencies=certificates_enabled)
async def issue_certificate(course_id: str, user: ProfileRecord = Depends(require_student)) -> CertificateResponse:
    return CertificateResponse.model_validate(enrollment.issue_certificate(user, course_id))

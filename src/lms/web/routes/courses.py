"""Course, module and lesson endpoints."""

from fastapi import APIRouter, Depends, status

from lms.core import catalog, enrollment, lesson_notes
from lms.db.profiles_repository import ProfileRecord
from lms.web.dependencies import (
    get_current_user,
    get_optional_user,
    require_feature,
    require_instructor,
    require_student,
)
from lms.web.schemas import (
    CountResponse,
    CourseCreate,
    CourseDetailResponse,
    CourseListingResponse,
    CourseListResponse,
    CourseResponse,
    CourseUpdate,
    LessonCreate,
    LessonResponse,
    LessonUpdate,
    ModuleCreate,
    ModuleResponse,
    ModuleUpdate,
    NoteCreate,
    NoteReplyCreate,
    NoteReplyResponse,
    NoteResponse,
    RatingRequest,
    RatingResponse,
    RatingSummary,
    StudentProgressResponse,
)

router = APIRouter(prefix="/api/courses", tags=["courses"], dependencies=[Depends(require_feature("courses"))])

ratings_enabled = [Depends(require_feature("ratings"))]


# =============================================================================
# COURSES
# =============================================================================


@router.get("", response_model=CourseListResponse)
async def list_courses(search: str | None = None, category: str | None = None) -> CourseListResponse:
    """Published courses with enrollment and rating figures."""
    listings = [
        CourseListingResponse.model_validate(listing)
        for listing in catalog.list_public_courses(search=search, category=category)
    ]
    return CourseListResponse(courses=listings, count=len(listings))


@router.get("/mine", response_model=CourseListResponse)
async def list_my_courses(user: ProfileRecord = Depends(require_instructor)) -> CourseListResponse:
    listings = [CourseListingResponse.model_validate(listing) for listing in catalog.list_instructor_courses(user)]
    return CourseListResponse(courses=listings, count=len(listings))


@router.post("", response_model=CourseResponse, status_code=status.HTTP_201_CREATED)
async def create_course(
    body: CourseCreate,
    user: ProfileRecord = Depends(require_instructor),
) -> CourseResponse:
    return CourseResponse.model_validate(catalog.create_course(user, **body.model_dump()))


@router.get("/{course_id}", response_model=CourseDetailResponse)
async def get_course(
    course_id: str,
    user: ProfileRecord | None = Depends(get_optional_user),
) -> CourseDetailResponse:
    """Course with modules and lessons; drafts only for their managers."""
    return CourseDetailResponse.model_validate(catalog.get_course_detail(course_id, viewer=user))


@router.patch("/{course_id}", response_model=CourseResponse)
async def update_course(
    course_id: str,
    body: CourseUpdate,
    user: ProfileRecord = Depends(require_instructor),
) -> CourseResponse:
    changes = body.model_dump(exclude_unset=True)
    return CourseResponse.model_validate(catalog.update_course(user, course_id, changes))


@router.delete("/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_course(course_id: str, user: ProfileRecord = Depends(require_instructor)) -> None:
    catalog.delete_course(user, course_id)


@router.post("/{course_id}/publish", response_model=CourseResponse)
async def publish_course(course_id: str, user: ProfileRecord = Depends(require_instructor)) -> CourseResponse:
    return CourseResponse.model_validate(catalog.publish_course(user, course_id))


@router.get("/{course_id}/enrollment-count", response_model=CountResponse)
async def enrollment_count(course_id: str) -> CountResponse:
    catalog.get_course(course_id)
    return CountResponse(count=catalog.enrollment_count(course_id))


@router.get("/{course_id}/students", response_model=list[StudentProgressResponse])
async def course_students(
    course_id: str,
    user: ProfileRecord = Depends(require_instructor),
) -> list[StudentProgressResponse]:
    return [StudentProgressResponse.model_validate(row) for row in enrollment.course_students(user, course_id)]


# =============================================================================
# RATINGS
# =============================================================================


@router.get("/{course_id}/rating", response_model=RatingSummary, dependencies=ratings_enabled)
async def rating_summary(course_id: str) -> RatingSummary:
    return RatingSummary(**enrollment.rating_summary(course_id))


@router.post("/{course_id}/rating", response_model=RatingResponse, dependencies=ratings_enabled)
async def rate_course(
    course_id: str,
    body: RatingRequest,
    user: ProfileRecord = Depends(require_student),
) -> RatingResponse:
    """Rate a completed course; rating again replaces the previous one."""
    return RatingResponse.model_validate(enrollment.rate_course(user, course_id, body.rating, body.review))


@router.get("/{course_id}/rating/mine", response_model=RatingResponse | None, dependencies=ratings_enabled)
async def my_rating(course_id: str, user: ProfileRecord = Depends(require_student)) -> RatingResponse | None:
    rating = enrollment.get_my_rating(user, course_id)
    return RatingResponse.model_validate(rating) if rating else None


# =============================================================================
# MODULES AND LESSONS
# =============================================================================


@router.post("/{course_id}/modules", response_model=ModuleResponse, status_code=status.HTTP_201_CREATED)
async def create_module(
    course_id: str,
    body: ModuleCreate,
    user: ProfileRecord = Depends(require_instructor),
) -> ModuleResponse:
    module = catalog.create_module(user, course_id, body.title, body.description, body.order_index)
    return ModuleResponse.model_validate(module)


@router.patch("/modules/{module_id}", response_model=ModuleResponse)
async def update_module(
    module_id: str,
    body: ModuleUpdate,
    user: ProfileRecord = Depends(require_instructor),
) -> ModuleResponse:
    return ModuleResponse.model_validate(catalog.update_module(user, module_id, **body.model_dump(exclude_unset=True)))


@router.delete("/modules/{module_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_module(module_id: str, user: ProfileRecord = Depends(require_instructor)) -> None:
    catalog.delete_module(user, module_id)


@router.post("/modules/{module_id}/lessons", response_model=LessonResponse, status_code=status.HTTP_201_CREATED)
async def create_lesson(
    module_id: str,
    body: LessonCreate,
    user: ProfileRecord = Depends(require_instructor),
) -> LessonResponse:
    lesson = catalog.create_lesson(user, module_id, **body.model_dump())
    return LessonResponse.model_validate(lesson)


@router.patch("/lessons/{lesson_id}", response_model=LessonResponse)
async def update_lesson(
    lesson_id: str,
    body: LessonUpdate,
    user: ProfileRecord = Depends(require_instructor),
) -> LessonResponse:
    lesson = catalog.update_lesson(user, lesson_id, body.model_dump(exclude_unset=True))
    return LessonResponse.model_validate(lesson)


@router.delete("/lessons/{lesson_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_lesson(lesson_id: str, user: ProfileRecord = Depends(require_instructor)) -> None:
    catalog.delete_lesson(user, lesson_id)


# =============================================================================
# LESSON NOTES
# =============================================================================


@router.get("/lessons/{lesson_id}/notes", response_model=list[NoteResponse])
async def list_my_notes(lesson_id: str, user: ProfileRecord = Depends(require_student)) -> list[NoteResponse]:
    return [NoteResponse.model_validate(n) for n in lesson_notes.list_my_notes(user, lesson_id)]


@router.post("/lessons/{lesson_id}/notes", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
async def create_note(
    lesson_id: str,
    body: NoteCreate,
    user: ProfileRecord = Depends(require_student),
) -> NoteResponse:
    return NoteResponse.model_validate(lesson_notes.create_note(user, lesson_id, body.content, body.is_question))


@router.get("/{course_id}/questions", response_model=list[NoteResponse])
async def list_questions(
    course_id: str,
    unanswered: bool = False,
    user: ProfileRecord = Depends(require_instructor),
) -> list[NoteResponse]:
    """Student questions on the course's lessons, newest first."""
    questions = lesson_notes.list_course_questions(user, course_id, unanswered_only=unanswered)
    return [NoteResponse.model_validate(n) for n in questions]


@router.post("/notes/{note_id}/replies", response_model=NoteReplyResponse, status_code=status.HTTP_201_CREATED)
async def reply_to_note(
    note_id: str,
    body: NoteReplyCreate,
    user: ProfileRecord = Depends(get_current_user),
) -> NoteReplyResponse:
    return NoteReplyResponse.model_validate(lesson_notes.reply_to_note(user, note_id, body.content))


@router.delete("/notes/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_note(note_id: str, user: ProfileRecord = Depends(require_student)) -> None:
    lesson_notes.delete_note(user, note_id)

"""Pydantic schemas for the Web API.

Request bodies and serialization models for every resource.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str


class MessageResponse(BaseModel):
    message: str


# =============================================================================
# USER SCHEMAS
# =============================================================================


class UserRegister(BaseModel):
    """Request body for registering a profile."""

    email: str = Field(..., min_length=3, max_length=200)
    full_name: str = Field(..., min_length=1, max_length=200)
    role: str = Field(default="student")


class ProfileUpdate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=200)


class UserResponse(BaseModel):
    """Response for a profile."""

    id: str
    email: str
    full_name: str
    role: str
    status: str
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class UserListResponse(BaseModel):
    users: list[UserResponse]
    count: int


# =============================================================================
# COURSE SCHEMAS
# =============================================================================


class CourseCreate(BaseModel):
    """Request body for creating a course."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="")
    category: str | None = None
    price: float = Field(default=0.0, ge=0)
    monthly_price: float | None = Field(default=None, ge=0)
    yearly_price: float | None = Field(default=None, ge=0)
    subscription_enabled: bool = False
    thumbnail_url: str | None = None


class CourseUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    category: str | None = None
    price: float | None = Field(default=None, ge=0)
    monthly_price: float | None = Field(default=None, ge=0)
    yearly_price: float | None = Field(default=None, ge=0)
    subscription_enabled: bool | None = None
    status: str | None = None
    thumbnail_url: str | None = None


class CourseResponse(BaseModel):
    id: str
    instructor_id: str
    title: str
    description: str
    category: str | None
    price: float
    monthly_price: float | None
    yearly_price: float | None
    subscription_enabled: bool
    status: str
    thumbnail_url: str | None
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class CourseListingResponse(BaseModel):
    """A course with its enrollment and rating figures."""

    course: CourseResponse
    enrollment_count: int
    average_rating: float | None
    rating_count: int

    model_config = {"from_attributes": True}


class CourseListResponse(BaseModel):
    courses: list[CourseListingResponse]
    count: int


class ModuleCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="")
    order_index: int | None = Field(default=None, ge=0)


class ModuleUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    order_index: int | None = Field(default=None, ge=0)


class ModuleResponse(BaseModel):
    id: str
    course_id: str
    title: str
    description: str
    order_index: int
    created_at: str

    model_config = {"from_attributes": True}


class LessonCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(default="")
    video_url: str | None = None
    duration_minutes: int = Field(default=0, ge=0)
    order_index: int | None = Field(default=None, ge=0)


class LessonUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    content: str | None = None
    video_url: str | None = None
    duration_minutes: int | None = Field(default=None, ge=0)
    order_index: int | None = Field(default=None, ge=0)


class LessonResponse(BaseModel):
    id: str
    module_id: str
    title: str
    content: str
    video_url: str | None
    duration_minutes: int
    order_index: int
    created_at: str

    model_config = {"from_attributes": True}


class NoteCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
    is_question: bool = False


class NoteReplyCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


class NoteReplyResponse(BaseModel):
    id: str
    note_id: str
    author_id: str
    content: str
    created_at: str

    model_config = {"from_attributes": True}


class NoteResponse(BaseModel):
    id: str
    student_id: str
    lesson_id: str
    content: str
    is_question: bool
    created_at: str
    replies: list[NoteReplyResponse]

    model_config = {"from_attributes": True}


class ModuleWithLessonsResponse(BaseModel):
    module: ModuleResponse
    lessons: list[LessonResponse]

    model_config = {"from_attributes": True}


class CourseDetailResponse(BaseModel):
    """Course with its curriculum."""

    course: CourseResponse
    modules: list[ModuleWithLessonsResponse]
    enrollment_count: int
    average_rating: float | None
    rating_count: int
    total_lessons: int

    model_config = {"from_attributes": True}


class CountResponse(BaseModel):
    count: int


# =============================================================================
# ENROLLMENT SCHEMAS
# =============================================================================


class EnrollmentResponse(BaseModel):
    id: str
    student_id: str
    course_id: str
    progress_percentage: int
    enrolled_at: str

    model_config = {"from_attributes": True}


class EnrollmentWithCourse(BaseModel):
    enrollment: EnrollmentResponse
    course: CourseResponse


class EnrollmentStatusResponse(BaseModel):
    enrolled: bool
    progress_percentage: int


class ProgressUpdate(BaseModel):
    lesson_id: str
    completed: bool = True


class ProgressResponse(BaseModel):
    progress_percentage: int
    certificate_generated: bool
    total_lessons: int
    completed_lessons: int
    modules: int

    model_config = {"from_attributes": True}


class CompletedLessonsResponse(BaseModel):
    lesson_ids: list[str]


class CertificateResponse(BaseModel):
    id: str
    student_id: str
    course_id: str
    certificate_number: str
    issued_at: str

    model_config = {"from_attributes": True}


class CertificateVerification(BaseModel):
    certificate_number: str
    issued_at: str
    student_name: str | None
    course_title: str | None
    course_id: str


class RatingRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    review: str | None = Field(default=None, max_length=5000)


class RatingResponse(BaseModel):
    student_id: str
    course_id: str
    rating: int
    review: str | None
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class RatingSummary(BaseModel):
    average_rating: float | None
    rating_count: int


class StudentProgressResponse(BaseModel):
    student_id: str
    student_name: str
    student_email: str
    course_id: str
    course_title: str
    progress_percentage: int
    enrolled_at: str

    model_config = {"from_attributes": True}


# =============================================================================
# QUIZ SCHEMAS
# =============================================================================


class OptionCreate(BaseModel):
    option_text: str = Field(..., min_length=1)
    is_correct: bool = False


class QuestionCreate(BaseModel):
    question_text: str = Field(..., min_length=1)
    options: list[OptionCreate] = Field(..., min_length=2)


class QuizCreate(BaseModel):
    course_id: str
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="")
    passing_score: int = Field(default=70, ge=0, le=100)
    lesson_id: str | None = None
    questions: list[QuestionCreate] = Field(..., min_length=1)


class OptionResponse(BaseModel):
    id: str
    option_text: str
    order_index: int
    is_correct: bool | None = None


class QuestionResponse(BaseModel):
    id: str
    question_text: str
    order_index: int
    options: list[OptionResponse]


class QuizResponse(BaseModel):
    id: str
    course_id: str
    lesson_id: str | None
    title: str
    description: str
    passing_score: int
    created_at: str
    questions: list[QuestionResponse] = Field(default_factory=list)


class QuizSubmission(BaseModel):
    """Answers as {question_id: option_id}."""

    answers: dict[str, str]


class QuestionGradeResponse(BaseModel):
    question_id: str
    selected_option_id: str | None
    correct_option_ids: list[str]
    is_correct: bool

    model_config = {"from_attributes": True}


class QuizGradeResponse(BaseModel):
    quiz_id: str
    attempt_id: str | None
    score: int
    passed: bool
    correct_count: int
    total_questions: int
    passing_score: int
    results: list[QuestionGradeResponse]

    model_config = {"from_attributes": True}


class AttemptResponse(BaseModel):
    id: str
    quiz_id: str
    student_id: str
    score: int
    passed: bool
    answers: list[dict[str, Any]]
    attempted_at: str

    model_config = {"from_attributes": True}


# =============================================================================
# ASSIGNMENT SCHEMAS
# =============================================================================


class AssignmentCreate(BaseModel):
    course_id: str
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="")
    due_date: str | None = None
    max_points: int = Field(default=100, gt=0)
    is_published: bool = False
    module_id: str | None = None


class AssignmentUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    due_date: str | None = None
    max_points: int | None = Field(default=None, gt=0)
    is_published: bool | None = None
    module_id: str | None = None


class AssignmentResponse(BaseModel):
    id: str
    course_id: str
    module_id: str | None
    title: str
    description: str
    due_date: str | None
    max_points: int
    is_published: bool
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class SubmissionCreate(BaseModel):
    submission_text: str | None = None
    file_url: str | None = None


class GradeRequest(BaseModel):
    score: float
    feedback: str | None = None


class SubmissionResponse(BaseModel):
    id: str
    assignment_id: str
    student_id: str
    submission_text: str | None
    file_url: str | None
    status: str
    score: float | None
    feedback: str | None
    submitted_at: str
    graded_at: str | None
    graded_by: str | None

    model_config = {"from_attributes": True}


class AssignmentViewResponse(BaseModel):
    assignment: AssignmentResponse
    course_title: str
    submission_count: int | None = None
    my_submission: SubmissionResponse | None = None

    model_config = {"from_attributes": True}


# =============================================================================
# BOOK SCHEMAS
# =============================================================================


class BookCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="")
    price: float = Field(default=0.0, ge=0)
    monthly_price: float | None = Field(default=None, ge=0)
    yearly_price: float | None = Field(default=None, ge=0)
    subscription_enabled: bool = False
    status: str = Field(default="draft")
    cover_url: str | None = None


class BookUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    price: float | None = Field(default=None, ge=0)
    monthly_price: float | None = Field(default=None, ge=0)
    yearly_price: float | None = Field(default=None, ge=0)
    subscription_enabled: bool | None = None
    status: str | None = None
    cover_url: str | None = None


class BookResponse(BaseModel):
    id: str
    author_id: str
    title: str
    description: str
    price: float
    monthly_price: float | None
    yearly_price: float | None
    subscription_enabled: bool
    status: str
    cover_url: str | None
    created_at: str

    model_config = {"from_attributes": True}


class BookListResponse(BaseModel):
    books: list[BookResponse]
    count: int


class PurchaseResponse(BaseModel):
    id: str
    student_id: str
    book_id: str
    purchase_type: str
    price_paid: float
    purchased_at: str
    delivery_status: str | None = None
    tracking_number: str | None = None
    carrier_name: str | None = None
    shipping_address: str | None = None
    shipped_at: str | None = None
    delivered_at: str | None = None

    model_config = {"from_attributes": True}


class PurchaseWithBook(BaseModel):
    purchase: PurchaseResponse
    book: BookResponse


class ShipmentResponse(BaseModel):
    purchase: PurchaseResponse
    student_name: str | None
    student_email: str | None


class ShipmentUpdate(BaseModel):
    delivery_status: str
    tracking_number: str | None = None
    carrier_name: str | None = None
    shipping_address: str | None = None


# =============================================================================
# PAYMENT SCHEMAS
# =============================================================================


class CheckoutRequest(BaseModel):
    """Request body for starting a checkout; exactly one product id."""

    course_id: str | None = None
    book_id: str | None = None
    purchase_type: str = Field(default="digital")
    payment_type: str = Field(default="one_time")


class CheckoutResponse(BaseModel):
    free: bool
    session_id: str | None = None
    url: str | None = None

    model_config = {"from_attributes": True}


class SubscriptionResponse(BaseModel):
    id: str
    user_id: str
    course_id: str | None
    book_id: str | None
    stripe_subscription_id: str | None
    status: str
    billing_cycle: str
    current_period_start: str | None
    current_period_end: str | None
    cancel_at_period_end: bool
    canceled_at: str | None
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class SubscriptionViewResponse(BaseModel):
    subscription: SubscriptionResponse
    product_type: str
    product_title: str | None

    model_config = {"from_attributes": True}


class ExpiryCheckResponse(BaseModel):
    total: int
    sent: list[str]
    failed: list[str]

    model_config = {"from_attributes": True}


# =============================================================================
# NOTIFICATION SCHEMAS
# =============================================================================


class NotificationResponse(BaseModel):
    id: str
    user_id: str
    type: str
    title: str
    message: str
    link: str | None
    related_id: str | None
    related_type: str | None
    read: bool
    created_at: str

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    unread_count: int


class SettingsResponse(BaseModel):
    settings: dict[str, Any]


class SettingsUpdate(BaseModel):
    settings: dict[str, Any]


class WebsiteSettingResponse(BaseModel):
    setting_key: str
    setting_value: str
    setting_type: str
    category: str
    is_public: bool
    updated_at: str | None

    model_config = {"from_attributes": True}


class WebsiteSettingsResponse(BaseModel):
    settings: dict[str, Any]
    raw: list[WebsiteSettingResponse]


# =============================================================================
# ANNOUNCEMENT SCHEMAS
# =============================================================================


class AnnouncementCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    priority: str = Field(default="normal")
    target_audience: str | None = None
    course_id: str | None = None
    is_published: bool = False
    expires_at: str | None = None


class AnnouncementUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    content: str | None = None
    priority: str | None = None
    target_audience: str | None = None
    expires_at: str | None = None


class AnnouncementResponse(BaseModel):
    id: str
    author_id: str
    course_id: str | None
    title: str
    content: str
    priority: str
    target_audience: str
    is_published: bool
    published_at: str | None
    expires_at: str | None
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


# =============================================================================
# HELP CENTER SCHEMAS
# =============================================================================


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    section: str
    slug: str | None = None
    description: str = Field(default="")
    icon: str | None = None
    order_index: int = Field(default=0, ge=0)


class CategoryResponse(BaseModel):
    id: str
    name: str
    slug: str
    description: str
    icon: str | None
    section: str
    order_index: int
    created_at: str

    model_config = {"from_attributes": True}


class ArticleCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    section: str
    slug: str | None = None
    category_id: str | None = None
    excerpt: str = Field(default="")
    status: str = Field(default="draft")
    order_index: int = Field(default=0, ge=0)
    tags: list[str] | None = None


class ArticleUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    content: str | None = None
    slug: str | None = None
    category_id: str | None = None
    excerpt: str | None = None
    status: str | None = None
    order_index: int | None = Field(default=None, ge=0)
    tags: list[str] | None = None


class ArticleResponse(BaseModel):
    id: str
    category_id: str | None
    author_id: str | None
    title: str
    slug: str
    content: str
    excerpt: str
    section: str
    status: str
    order_index: int
    view_count: int
    helpful_count: int
    not_helpful_count: int
    created_at: str
    updated_at: str
    tags: list[str]

    model_config = {"from_attributes": True}


class FeedbackRequest(BaseModel):
    is_helpful: bool
    feedback_text: str | None = Field(default=None, max_length=2000)


# =============================================================================
# MEETING SCHEMAS
# =============================================================================


class MeetingCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    start_time: str
    course_id: str | None = None
    description: str | None = None
    end_time: str | None = None
    participant_type: str = Field(default="all")
    selected_participants: list[str] | None = None
    max_participants: int = Field(default=50, ge=1)
    recording_enabled: bool = False


class MeetingStatusUpdate(BaseModel):
    status: str


class RecordingCreate(BaseModel):
    recording_url: str = Field(..., min_length=1)


class MeetingResponse(BaseModel):
    id: str
    instructor_id: str
    course_id: str | None
    title: str
    description: str | None
    room_name: str
    meeting_url: str
    start_time: str
    end_time: str | None
    participant_type: str
    max_participants: int
    recording_enabled: bool
    status: str
    created_at: str
    recording_url: str | None = None

    model_config = {"from_attributes": True}


class JoinResponse(BaseModel):
    meeting: MeetingResponse
    is_host: bool
    meeting_token: str


# =============================================================================
# REPORT / ANALYTICS SCHEMAS
# =============================================================================


class ReportRequest(BaseModel):
    report_type: str | None = Field(default="summary")
    date_range: str | None = Field(default="last-30-days")
    format: str = Field(default="csv")


class MonthlyEarningsResponse(BaseModel):
    month: str
    year: int
    earnings: float
    students: int
    courses: int

    model_config = {"from_attributes": True}


class CourseEarningsResponse(BaseModel):
    course_id: str
    title: str
    price: float
    status: str
    enrollments: int
    earnings: float

    model_config = {"from_attributes": True}


class InstructorEarningsResponse(BaseModel):
    total_earnings: float
    this_month: float
    last_month: float
    monthly_growth: float
    average_monthly: float
    total_students: int
    average_course_price: int
    history: list[MonthlyEarningsResponse]
    courses: list[CourseEarningsResponse]
    top_courses: list[CourseEarningsResponse]

    model_config = {"from_attributes": True}


class AdminDashboardResponse(BaseModel):
    total_users: int
    users_by_role: dict[str, int]
    users_by_status: dict[str, int]
    total_courses: int
    published_courses: int
    draft_courses: int
    total_enrollments: int
    total_revenue: float
    course_revenue: float
    book_revenue: float
    platform_commission: float
    creator_earnings: float

    model_config = {"from_attributes": True}

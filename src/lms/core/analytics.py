"""Dashboard figures for instructors and administrators."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

import structlog

from lms.core.errors import PermissionDeniedError
from lms.db import courses_repository, enrollments_repository, payments_repository, profiles_repository
from lms.db.profiles_repository import ProfileRecord
from lms.utils.validators import parse_iso, round_half_up, utc_now

logger = structlog.get_logger(__name__)

HISTORY_MONTHS = 6
TOP_COURSES = 5
MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


@dataclass
class MonthlyEarnings:
    month: str
    year: int
    earnings: float
    students: int
    courses: int


@dataclass
class CourseEarnings:
    course_id: str
    title: str
    price: float
    status: str
    enrollments: int
    earnings: float


@dataclass
class InstructorEarnings:
    total_earnings: float
    this_month: float
    last_month: float
    monthly_growth: float
    average_monthly: float
    total_students: int
    average_course_price: int
    history: list[MonthlyEarnings] = field(default_factory=list)
    courses: list[CourseEarnings] = field(default_factory=list)

    @property
    def top_courses(self) -> list[CourseEarnings]:
        return self.courses[:TOP_COURSES]


@dataclass
class AdminDashboard:
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


def _month_key(moment: datetime) -> tuple[int, int]:
    return moment.year, moment.month


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def instructor_earnings(instructor: ProfileRecord, now: datetime | None = None) -> InstructorEarnings:
    """Creator earnings from completed course payments of an instructor's courses.

    Args:
        instructor: Instructor (or admin looking at their own courses)
        now: Reference time; defaults to the current time

    Returns:
        InstructorEarnings with courses sorted by earnings, highest first
    """
    if instructor.role not in ("instructor", "admin"):
        raise PermissionDeniedError("Only instructors have earnings")

    now = now or utc_now()
    courses = courses_repository.list_courses(instructor_id=instructor.id)
    course_ids = [c.id for c in courses]
    payments = [
        p
        for p in payments_repository.list_payments(course_ids=course_ids, status="completed")
        if p.payment_type == "course"
    ]

    this_key = _month_key(now)
    last_key = _shift_month(now.year, now.month, -1)

    by_month: dict[tuple[int, int], list] = {}
    total = 0.0
    for payment in payments:
        total += payment.creator_earnings or 0
        by_month.setdefault(_month_key(parse_iso(payment.created_at)), []).append(payment)

    def month_sum(key: tuple[int, int]) -> float:
        return sum(p.creator_earnings or 0 for p in by_month.get(key, []))

    this_month = month_sum(this_key)
    last_month = month_sum(last_key)
    growth = (this_month - last_month) / last_month * 100 if last_month > 0 else 0.0

    history = []
    for offset in range(HISTORY_MONTHS - 1, -1, -1):
        year, month = _shift_month(now.year, now.month, -offset)
        month_payments = by_month.get((year, month), [])
        history.append(
            MonthlyEarnings(
                month=MONTH_NAMES[month - 1],
                year=year,
                earnings=round(sum(p.creator_earnings or 0 for p in month_payments), 2),
                students=len(month_payments),
                courses=len({p.course_id for p in month_payments}),
            )
        )
    average_monthly = sum(m.earnings for m in history) / len(history)

    per_course = []
    total_students = 0
    for course in courses:
        enrollments = enrollments_repository.count_enrollments(course.id)
        total_students += enrollments
        per_course.append(
            CourseEarnings(
                course_id=course.id,
                title=course.title,
                price=course.price,
                status=course.status,
                enrollments=enrollments,
                earnings=round(sum(p.creator_earnings or 0 for p in payments if p.course_id == course.id), 2),
            )
        )
    per_course.sort(key=lambda c: c.earnings, reverse=True)

    average_price = round_half_up(sum(c.price or 0 for c in courses) / len(courses)) if courses else 0

    return InstructorEarnings(
        total_earnings=round(total, 2),
        this_month=round(this_month, 2),
        last_month=round(last_month, 2),
        monthly_growth=round(growth, 2),
        average_monthly=round(average_monthly, 2),
        total_students=total_students,
        average_course_price=average_price,
        history=history,
        courses=per_course,
    )


def admin_dashboard(admin: ProfileRecord) -> AdminDashboard:
    """Platform-wide counts and payment totals."""
    if admin.role != "admin":
        raise PermissionDeniedError("Forbidden - Admin only")

    profiles = profiles_repository.list_profiles()
    courses = courses_repository.list_courses()
    payments = payments_repository.list_payments(status="completed")

    users_by_role = {role: 0 for role in ("student", "instructor", "admin")}
    users_by_status = {status: 0 for status in ("pending", "approved", "inactive")}
    for profile in profiles:
        users_by_role[profile.role] = users_by_role.get(profile.role, 0) + 1
        users_by_status[profile.status] = users_by_status.get(profile.status, 0) + 1

    course_revenue = sum(p.amount for p in payments if p.payment_type == "course")
    book_revenue = sum(p.amount for p in payments if p.payment_type == "book")

    dashboard = AdminDashboard(
        total_users=len(profiles),
        users_by_role=users_by_role,
        users_by_status=users_by_status,
        total_courses=len(courses),
        published_courses=sum(1 for c in courses if c.status == "published"),
        draft_courses=sum(1 for c in courses if c.status == "draft"),
        total_enrollments=len(enrollments_repository.list_enrollments()),
        total_revenue=round(sum(p.amount for p in payments), 2),
        course_revenue=round(course_revenue, 2),
        book_revenue=round(book_revenue, 2),
        platform_commission=round(sum(p.platform_commission for p in payments), 2),
        creator_earnings=round(sum(p.creator_earnings for p in payments), 2),
    )
    logger.debug("analytics.admin_dashboard", users=dashboard.total_users, payments=len(payments))
    return dashboard

"""Platform reports for administrators.

A report is built from the rows created inside a date range and rendered
as CSV (also served for 'excel') or JSON (also served for 'pdf').
"""

from __future__ import annotations

import calendar
import csv
import io
import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any

import structlog

from lms.core.errors import PermissionDeniedError, ValidationError
from lms.db import books_repository, courses_repository, enrollments_repository, profiles_repository
from lms.db.profiles_repository import ProfileRecord
from lms.utils.validators import utc_now

logger = structlog.get_logger(__name__)

DATE_RANGES = (
    "last-7-days",
    "last-30-days",
    "last-3-months",
    "last-6-months",
    "last-year",
    "all-time",
)
DEFAULT_RANGE_DAYS = 30
RECENT_ACTIVITY_DAYS = 30

REPORT_TYPES = ("summary", "users", "courses", "books", "revenue", "activity")
CSV_FORMATS = ("csv", "excel")
JSON_FORMATS = ("json", "pdf")

# Base names of the downloaded files
REPORT_FILENAMES = {
    "summary": "platform-summary-report",
    "users": "users-report",
    "courses": "courses-report",
    "books": "books-report",
    "revenue": "revenue-report",
    "activity": "activity-report",
}


@dataclass
class ReportData:
    """Rows and aggregates behind every report type."""

    range_start: str | None
    total_users: int = 0
    total_courses: int = 0
    total_enrollments: int = 0
    total_books: int = 0
    total_book_purchases: int = 0
    students: int = 0
    instructors: int = 0
    published_courses: int = 0
    draft_courses: int = 0
    course_revenue: float = 0.0
    book_revenue: float = 0.0
    total_revenue: float = 0.0
    recent_users: int = 0
    recent_enrollments: int = 0
    recent_courses: int = 0
    recent_book_purchases: int = 0
    users: list[dict[str, Any]] = field(default_factory=list)
    courses: list[dict[str, Any]] = field(default_factory=list)
    books: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class GeneratedReport:
    content: str
    media_type: str
    filename: str


def _months_before(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 - months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def range_start(date_range: str | None, now: datetime | None = None) -> datetime | None:
    """Start of a named date range; None means no lower bound.

    Unknown names fall back to the last 30 days.
    """
    now = now or utc_now()
    if date_range == "all-time":
        return None
    if date_range == "last-7-days":
        return now - timedelta(days=7)
    if date_range == "last-3-months":
        return _months_before(now, 3)
    if date_range == "last-6-months":
        return _months_before(now, 6)
    if date_range == "last-year":
        return _months_before(now, 12)
    return now - timedelta(days=DEFAULT_RANGE_DAYS)


def _amount(value: float | None) -> float | int:
    value = round(value or 0, 2)
    return int(value) if value == int(value) else value


def _after(timestamp: str, start: str | None) -> bool:
    return start is None or timestamp >= start


def collect_report_data(date_range: str | None = None, now: datetime | None = None) -> ReportData:
    """Gather the rows created inside the range and aggregate them."""
    now = now or utc_now()
    start = range_start(date_range, now)
    start_iso = start.isoformat() if start else None
    recent_iso = (now - timedelta(days=RECENT_ACTIVITY_DAYS)).isoformat()

    profiles = [p for p in profiles_repository.list_profiles() if _after(p.created_at, start_iso)]
    courses = [c for c in courses_repository.list_courses() if _after(c.created_at, start_iso)]
    books = [b for b in books_repository.list_books() if _after(b.created_at, start_iso)]
    enrollments = enrollments_repository.list_enrollments(since=start_iso)
    purchases = books_repository.list_purchases(since=start_iso)

    enrollments_per_course: dict[str, int] = {}
    for enrollment in enrollments:
        enrollments_per_course[enrollment.course_id] = enrollments_per_course.get(enrollment.course_id, 0) + 1
    purchases_per_book: dict[str, int] = {}
    for purchase in purchases:
        purchases_per_book[purchase.book_id] = purchases_per_book.get(purchase.book_id, 0) + 1

    # Revenue counts enrollments inside the range even for courses created before it
    prices = {c.id: c.price for c in courses_repository.list_courses()}
    course_revenue = sum(prices.get(e.course_id, 0) or 0 for e in enrollments)
    book_revenue = sum(p.price_paid or 0 for p in purchases)

    data = ReportData(
        range_start=start_iso,
        total_users=len(profiles),
        total_courses=len(courses),
        total_enrollments=len(enrollments),
        total_books=len(books),
        total_book_purchases=len(purchases),
        students=sum(1 for p in profiles if p.role == "student"),
        instructors=sum(1 for p in profiles if p.role == "instructor"),
        published_courses=sum(1 for c in courses if c.status == "published"),
        draft_courses=sum(1 for c in courses if c.status == "draft"),
        course_revenue=_amount(course_revenue),
        book_revenue=_amount(book_revenue),
        total_revenue=_amount(course_revenue + book_revenue),
        recent_users=sum(1 for p in profiles if p.created_at >= recent_iso),
        recent_enrollments=sum(1 for e in enrollments if e.enrolled_at >= recent_iso),
        recent_courses=sum(1 for c in courses if c.created_at >= recent_iso),
        recent_book_purchases=sum(1 for p in purchases if p.purchased_at >= recent_iso),
    )

    data.users = [
        {
            "id": p.id,
            "email": p.email,
            "full_name": p.full_name,
            "role": p.role,
            "status": p.status,
            "created_at": p.created_at,
        }
        for p in profiles
    ]
    for course in courses:
        count = enrollments_per_course.get(course.id, 0)
        data.courses.append(
            {
                "id": course.id,
                "title": course.title,
                "price": _amount(course.price),
                "status": course.status,
                "enrollments": count,
                "revenue": _amount(count * (course.price or 0)),
                "created_at": course.created_at,
            }
        )
    for book in books:
        count = purchases_per_book.get(book.id, 0)
        data.books.append(
            {
                "id": book.id,
                "title": book.title,
                "price": _amount(book.price),
                "purchases": count,
                "revenue": _amount(count * (book.price or 0)),
                "created_at": book.created_at,
            }
        )
    return data


def render_csv(data: ReportData, report_type: str) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")

    if report_type == "summary":
        writer.writerow(["Metric", "Value"])
        writer.writerows(
            [
                ["Total Users", data.total_users],
                ["Total Courses", data.total_courses],
                ["Total Enrollments", data.total_enrollments],
                ["Total Books", data.total_books],
                ["Total Book Purchases", data.total_book_purchases],
                ["Students", data.students],
                ["Instructors", data.instructors],
                ["Published Courses", data.published_courses],
                ["Draft Courses", data.draft_courses],
                ["Total Revenue", data.total_revenue],
                ["Course Revenue", data.course_revenue],
                ["Book Revenue", data.book_revenue],
            ]
        )
    elif report_type == "users":
        writer.writerow(["ID", "Email", "Full Name", "Role", "Status", "Created At"])
        for user in data.users:
            writer.writerow(
                [user["id"], user["email"], user["full_name"], user["role"], user["status"], user["created_at"]]
            )
    elif report_type == "courses":
        writer.writerow(["ID", "Title", "Price", "Status", "Enrollments", "Revenue", "Created At"])
        for course in data.courses:
            writer.writerow(
                [
                    course["id"],
                    course["title"],
                    course["price"],
                    course["status"],
                    course["enrollments"],
                    course["revenue"],
                    course["created_at"],
                ]
            )
    elif report_type == "books":
        writer.writerow(["ID", "Title", "Price", "Purchases", "Revenue", "Created At"])
        for book in data.books:
            writer.writerow(
                [book["id"], book["title"], book["price"], book["purchases"], book["revenue"], book["created_at"]]
            )
    elif report_type == "revenue":
        writer.writerow(["Source", "Amount"])
        writer.writerows(
            [
                ["Course Revenue", data.course_revenue],
                ["Book Revenue", data.book_revenue],
                ["Total Revenue", data.total_revenue],
            ]
        )
    elif report_type == "activity":
        writer.writerow(["Metric", "Value"])
        writer.writerows(
            [
                [f"New Users ({RECENT_ACTIVITY_DAYS} days)", data.recent_users],
                [f"New Enrollments ({RECENT_ACTIVITY_DAYS} days)", data.recent_enrollments],
                [f"New Courses ({RECENT_ACTIVITY_DAYS} days)", data.recent_courses],
                [f"New Book Purchases ({RECENT_ACTIVITY_DAYS} days)", data.recent_book_purchases],
            ]
        )
    else:
        raise ValidationError(f"report_type must be one of {', '.join(REPORT_TYPES)}")

    return buffer.getvalue()


def render_json(data: ReportData, report_type: str, generated_at: datetime) -> str:
    report = {
        "report_type": report_type,
        "generated_at": generated_at.isoformat(),
        "data": asdict(data),
    }
    return json.dumps(report, indent=2)


def generate_report(
    admin: ProfileRecord,
    report_type: str | None = "summary",
    date_range: str | None = None,
    fmt: str = "csv",
    now: datetime | None = None,
) -> GeneratedReport:
    """Build a downloadable platform report.

    Args:
        admin: Requesting user; must be an admin
        report_type: One of REPORT_TYPES; None or 'all' means summary
        date_range: One of DATE_RANGES; anything else means 30 days
        fmt: 'csv' / 'excel' for CSV, 'json' / 'pdf' for JSON

    Raises:
        PermissionDeniedError: Caller is not an admin
        ValidationError: Unknown report type or format
    """
    if admin.role != "admin":
        raise PermissionDeniedError("Forbidden - Admin only")

    report_type = report_type or "summary"
    if report_type == "all":
        report_type = "summary"
    if report_type not in REPORT_TYPES:
        raise ValidationError(f"report_type must be one of {', '.join(REPORT_TYPES)}")
    if fmt not in CSV_FORMATS + JSON_FORMATS:
        raise ValidationError("Invalid format")

    now = now or utc_now()
    data = collect_report_data(date_range, now)
    day = now.date().isoformat()

    if fmt in CSV_FORMATS:
        report = GeneratedReport(
            content=render_csv(data, report_type),
            media_type="text/csv",
            filename=f"{REPORT_FILENAMES[report_type]}-{day}.csv",
        )
    else:
        report = GeneratedReport(
            content=render_json(data, report_type, now),
            media_type="application/json",
            filename=f"{REPORT_FILENAMES[report_type]}-{day}.json",
        )

    logger.info(
        "reports.generated",
        report_type=report_type,
        date_range=date_range,
        format=fmt,
        filename=report.filename,
    )
    return report

"""Tests for admin platform reports (F6)."""

import csv
import io
import json
from datetime import datetime, timedelta, timezone

import pytest

from lms.core import enrollment, reports
from lms.core.errors import PermissionDeniedError, ValidationError


def _rows(report) -> list[list[str]]:
    return list(csv.reader(io.StringIO(report.content)))


@pytest.fixture
def enrolled(student, course):
    return enrollment.enroll_student(student, course.id)


class TestRangeStart:
    NOW = datetime(2025, 5, 31, 12, 0, tzinfo=timezone.utc)

    def test_all_time_has_no_bound(self):
        assert reports.range_start("all-time", self.NOW) is None

    def test_days(self):
        assert reports.range_start("last-7-days", self.NOW) == self.NOW - timedelta(days=7)

    def test_months_clamp_day(self):
        # Feb 2025 has 28 days
        assert reports.range_start("last-3-months", self.NOW) == datetime(2025, 2, 28, 12, 0, tzinfo=timezone.utc)

    def test_year(self):
        assert reports.range_start("last-year", self.NOW).year == 2024

    def test_unknown_falls_back_to_30_days(self):
        assert reports.range_start("last-decade", self.NOW) == self.NOW - timedelta(days=30)


class TestGenerate:
    def test_summary_csv(self, admin, enrolled):
        report = reports.generate_report(admin, "summary", "all-time")
        rows = dict(_rows(report)[1:])

        assert _rows(report)[0] == ["Metric", "Value"]
        assert rows["Total Users"] == "3"
        assert rows["Instructors"] == "1"
        assert rows["Published Courses"] == "1"
        assert rows["Total Enrollments"] == "1"
        assert rows["Course Revenue"] == "49.99"
        assert report.media_type == "text/csv"

    def test_filename(self, admin):
        now = datetime(2025, 5, 31, tzinfo=timezone.utc)
        assert reports.generate_report(admin, now=now).filename == "platform-summary-report-2025-05-31.csv"
        assert reports.generate_report(admin, "users", now=now).filename == "users-report-2025-05-31.csv"

    def test_all_means_summary(self, admin):
        assert reports.generate_report(admin, "all").filename.startswith("platform-summary-report-")

    def test_courses_csv(self, admin, enrolled, course):
        rows = _rows(reports.generate_report(admin, "courses", "all-time"))
        assert rows[0] == ["ID", "Title", "Price", "Status", "Enrollments", "Revenue", "Created At"]
        assert rows[1][:6] == [course.id, "Python 101", "49.99", "published", "1", "49.99"]

    def test_users_csv(self, admin, instructor, student):
        rows = _rows(reports.generate_report(admin, "users", "all-time"))
        assert {row[1] for row in rows[1:]} == {"admin@example.com", "teach@example.com", "stu@example.com"}

    def test_json(self, admin, enrolled):
        report = reports.generate_report(admin, "revenue", "all-time", fmt="json")
        body = json.loads(report.content)
        assert report.media_type == "application/json"
        assert report.filename.endswith(".json")
        assert body["report_type"] == "revenue"
        assert body["data"]["total_revenue"] == 49.99

    def test_pdf_served_as_json(self, admin):
        assert reports.generate_report(admin, fmt="pdf").media_type == "application/json"

    def test_range_excludes_older_rows(self, admin, enrolled):
        later = datetime.now(timezone.utc) + timedelta(days=60)
        rows = dict(_rows(reports.generate_report(admin, "summary", "last-7-days", now=later))[1:])
        assert rows["Total Users"] == "0"
        assert rows["Total Enrollments"] == "0"
        assert rows["Total Revenue"] == "0"

    def test_activity_window(self, admin, enrolled):
        rows = dict(_rows(reports.generate_report(admin, "activity", "all-time"))[1:])
        assert rows["New Users (30 days)"] == "3"
        assert rows["New Enrollments (30 days)"] == "1"

    def test_admin_only(self, instructor):
        with pytest.raises(PermissionDeniedError):
            reports.generate_report(instructor)

    def test_unknown_type(self, admin):
        with pytest.raises(ValidationError):
            reports.generate_report(admin, "payroll")

    def test_unknown_format(self, admin):
        with pytest.raises(ValidationError):
            reports.generate_report(admin, fmt="xml")

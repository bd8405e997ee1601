"""Admin reports and dashboard analytics."""

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from lms.core import analytics, reports
from lms.db.profiles_repository import ProfileRecord
from lms.web.dependencies import require_admin, require_instructor
from lms.web.schemas import AdminDashboardResponse, InstructorEarningsResponse, ReportRequest

reports_router = APIRouter(prefix="/api/reports", tags=["reports"])
analytics_router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@reports_router.post("/generate")
async def generate_report(body: ReportRequest, admin: ProfileRecord = Depends(require_admin)) -> Response:
    """Download a platform report as CSV or JSON."""
    report = reports.generate_report(
        admin,
        report_type=body.report_type,
        date_range=body.date_range,
        fmt=body.format,
    )
    return Response(
        content=report.content,
        media_type=report.media_type,
        headers={"Content-Disposition": f'attachment; filename="{report.filename}"'},
    )


@analytics_router.get("/earnings", response_model=InstructorEarningsResponse)
async def instructor_earnings(user: ProfileRecord = Depends(require_instructor)) -> InstructorEarningsResponse:
    return InstructorEarningsResponse.model_validate(analytics.instructor_earnings(user))


@analytics_router.get("/admin", response_model=AdminDashboardResponse)
async def admin_dashboard(admin: ProfileRecord = Depends(require_admin)) -> AdminDashboardResponse:
    return AdminDashboardResponse.model_validate(analytics.admin_dashboard(admin))

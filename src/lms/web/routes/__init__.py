"""Route handlers for the Web API."""

from lms.web.routes.announcements import router as announcements_router
from lms.web.routes.assignments import router as assignments_router
from lms.web.routes.books import router as books_router
from lms.web.routes.courses import router as courses_router
from lms.web.routes.enrollments import router as enrollments_router
from lms.web.routes.health import router as health_router
from lms.web.routes.help import router as help_router
from lms.web.routes.meetings import router as meetings_router
from lms.web.routes.notifications import router as notifications_router
from lms.web.routes.payments import checkout_router, subscriptions_router, webhooks_router
from lms.web.routes.quizzes import router as quizzes_router
from lms.web.routes.reports import analytics_router, reports_router
from lms.web.routes.settings import router as settings_router
from lms.web.routes.settings import website_router
from lms.web.routes.users import router as users_router

__all__ = [
    "analytics_router",
    "announcements_router",
    "assignments_router",
    "books_router",
    "checkout_router",
    "courses_router",
    "enrollments_router",
    "health_router",
    "help_router",
    "meetings_router",
    "notifications_router",
    "quizzes_router",
    "reports_router",
    "settings_router",
    "subscriptions_router",
    "users_router",
    "webhooks_router",
    "website_router",
]

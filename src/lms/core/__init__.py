"""Core business logic.

Modules:
- accounts: registration, approval, profiles
- catalog: courses, modules, lessons
- enrollment: enrollment, lesson progress, certificates, ratings
- quiz_grader: quizzes and grading
- assignments: assignments and submissions
- books: book store and shipping of physical copies
- payments: price quotes, commission split, Stripe checkout
- stripe_webhook: Stripe event handling
- subscriptions: subscription management and expiry reminders
- notifications: in-app notifications and user settings
- announcements: platform and course announcements
- help_center: help categories, articles, feedback
- meetings: live meetings and their recordings
- lesson_notes: private lesson notes and answered questions
- site_settings: website settings, maintenance mode, feature switches
- reports / analytics: admin reports and dashboards
"""

__all__ = [
    "accounts",
    "analytics",
    "announcements",
    "assignments",
    "books",
    "catalog",
    "enrollment",
    "help_center",
    "lesson_notes",
    "meetings",
    "notifications",
    "payments",
    "quiz_grader",
    "reports",
    "site_settings",
    "stripe_webhook",
    "subscriptions",
]

"""Learning Management System backend.

Course authoring, enrollment, payments and subscriptions, quizzes,
assignments, meetings, announcements, help center and dashboards.
"""

__version__ = "0.1.0"

"""Database module for SQLite persistence.

Provides:
- Database connection management
- Schema initialization
- One repository module per aggregate (profiles, catalog, enrollment,
  quizzes, assignments, books, payments, notifications, announcements,
  help center, meetings, lesson notes, website settings)
"""

from lms.db.database import get_db, get_db_path, init_db

__all__ = ["get_db", "get_db_path", "init_db"]

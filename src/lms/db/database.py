"""SQLite database connection and schema management.

Provides connection management and schema initialization for the LMS.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import structlog

logger = structlog.get_logger(__name__)

# Default database location
DEFAULT_DB_PATH = Path("db/lms.db")

# Current database path (module-level; set by init_db)
_db_path: Path | None = None


def init_db(db_path: Path | None = None) -> None:
    """Initialize database with schema.

    Creates the database file and all required tables if they don't exist.

    Args:
        db_path: Path to database file. Defaults to db/lms.db
    """
    global _db_path
    _db_path = db_path or DEFAULT_DB_PATH

    # Ensure directory exists
    _db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db() as conn:
        _create_schema(conn)

    logger.info("database.initialized", path=str(_db_path))


def fold(value: object) -> object:
    """Unicode case folding, registered as the SQL function fold()."""
    return value.casefold() if isinstance(value, str) else value


def contains_pattern(term: str) -> str:
    """LIKE pattern matching `term` literally anywhere in a folded column.

    Use with `fold(column) LIKE ? ESCAPE '\\'`.
    """
    escaped = term.casefold().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def get_db_path() -> Path:
    """Path of the active database."""
    return _db_path or DEFAULT_DB_PATH


@contextmanager
def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Get database connection as context manager.

    Yields:
        SQLite connection with row factory set to sqlite3.Row

    Example:
        with get_db() as conn:
            cursor = conn.execute("SELECT * FROM courses")
            rows = cursor.fetchall()
    """
    db_path = get_db_path()

    # Ensure directory exists
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    # SQLite LOWER() only folds ASCII
    conn.create_function("fold", 1, fold, deterministic=True)

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema.

    Uses IF NOT EXISTS for idempotency.
    """
    conn.executescript(
        """
        -- Accounts
        CREATE TABLE IF NOT EXISTS profiles (
            id TEXT PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            full_name TEXT NOT NULL DEFAULT '',
            role TEXT NOT NULL CHECK(role IN ('student', 'instructor', 'admin')),
            status TEXT NOT NULL DEFAULT 'approved'
                CHECK(status IN ('pending', 'approved', 'inactive')),
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS user_settings (
            user_id TEXT PRIMARY KEY REFERENCES profiles(id) ON DELETE CASCADE,
            settings TEXT NOT NULL DEFAULT '{}',
            updated_at TEXT NOT NULL
        );

        -- Catalog
        CREATE TABLE IF NOT EXISTS courses (
            id TEXT PRIMARY KEY,
            instructor_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            title TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            category TEXT,
            price REAL NOT NULL DEFAULT 0 CHECK(price >= 0),
            monthly_price REAL,
            yearly_price REAL,
            subscription_enabled INTEGER NOT NULL DEFAULT 0,
            status TEXT NOT NULL DEFAULT 'draft'
                CHECK(status IN ('draft', 'published', 'archived')),
            thumbnail_url TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS modules (
            id TEXT PRIMARY KEY,
            course_id TEXT NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
            title TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            order_index INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS lessons (
            id TEXT PRIMARY KEY,
            module_id TEXT NOT NULL REFERENCES modules(id) ON DELETE CASCADE,
            title TEXT NOT NULL,
            content TEXT NOT NULL DEFAULT '',
            video_url TEXT,
            duration_minutes INTEGER NOT NULL DEFAULT 0,
            order_index INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        );

        -- Enrollment and progress
        CREATE TABLE IF NOT EXISTS enrollments (
            id TEXT PRIMARY KEY,
            student_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            course_id TEXT NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
            progress_percentage INTEGER NOT NULL DEFAULT 0,
            enrolled_at TEXT NOT NULL,
            UNIQUE(student_id, course_id)
        );

        CREATE TABLE IF NOT EXISTS lesson_progress (
            student_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            lesson_id TEXT NOT NULL REFERENCES lessons(id) ON DELETE CASCADE,
            completed INTEGER NOT NULL DEFAULT 0,
            completed_at TEXT,
            updated_at TEXT NOT NULL,
            PRIMARY KEY (student_id, lesson_id)
        );

        CREATE TABLE IF NOT EXISTS certificates (
            id TEXT PRIMARY KEY,
            student_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            course_id TEXT NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
            certificate_number TEXT NOT NULL UNIQUE,
            issued_at TEXT NOT NULL,
            UNIQUE(student_id, course_id)
        );

        CREATE TABLE IF NOT EXISTS course_ratings (
            student_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            course_id TEXT NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
            rating INTEGER NOT NULL CHECK(rating BETWEEN 1 AND 5),
            review TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            PRIMARY KEY (student_id, course_id)
        );

        -- Quizzes
        CREATE TABLE IF NOT EXISTS quizzes (
            id TEXT PRIMARY KEY,
            course_id TEXT NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
            lesson_id TEXT REFERENCES lessons(id) ON DELETE SET NULL,
            title TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            passing_score INTEGER NOT NULL DEFAULT 70
                CHECK(passing_score BETWEEN 0 AND 100),
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS quiz_questions (
            id TEXT PRIMARY KEY,
            quiz_id TEXT NOT NULL REFERENCES quizzes(id) ON DELETE CASCADE,
            question_text TEXT NOT NULL,
            order_index INTEGER NOT NULL DEFAULT 0
        );

        CREATE TABLE IF NOT EXISTS quiz_options (
            id TEXT PRIMARY KEY,
            question_id TEXT NOT NULL REFERENCES quiz_questions(id) ON DELETE CASCADE,
            option_text TEXT NOT NULL,
            is_correct INTEGER NOT NULL DEFAULT 0,
            order_index INTEGER NOT NULL DEFAULT 0
        );

        CREATE TABLE IF NOT EXISTS quiz_attempts (
            id TEXT PRIMARY KEY,
            quiz_id TEXT NOT NULL REFERENCES quizzes(id) ON DELETE CASCADE,
            student_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            score INTEGER NOT NULL,
            passed INTEGER NOT NULL,
            answers TEXT NOT NULL DEFAULT '[]',
            attempted_at TEXT NOT NULL
        );

        -- Assignments
        CREATE TABLE IF NOT EXISTS assignments (
            id TEXT PRIMARY KEY,
            course_id TEXT NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
            module_id TEXT REFERENCES modules(id) ON DELETE SET NULL,
            title TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            due_date TEXT,
            max_points INTEGER NOT NULL DEFAULT 100 CHECK(max_points > 0),
            is_published INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS assignment_submissions (
            id TEXT PRIMARY KEY,
            assignment_id TEXT NOT NULL REFERENCES assignments(id) ON DELETE CASCADE,
            student_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            submission_text TEXT,
            file_url TEXT,
            status TEXT NOT NULL DEFAULT 'submitted'
                CHECK(status IN ('submitted', 'graded')),
            score REAL,
            feedback TEXT,
            submitted_at TEXT NOT NULL,
            graded_at TEXT,
            graded_by TEXT REFERENCES profiles(id) ON DELETE SET NULL,
            UNIQUE(assignment_id, student_id)
        );

        -- Books
        CREATE TABLE IF NOT EXISTS books (
            id TEXT PRIMARY KEY,
            author_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            title TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            price REAL NOT NULL DEFAULT 0 CHECK(price >= 0),
            monthly_price REAL,
            yearly_price REAL,
            subscription_enabled INTEGER NOT NULL DEFAULT 0,
            status TEXT NOT NULL DEFAULT 'draft'
                CHECK(status IN ('draft', 'published', 'archived')),
            cover_url TEXT,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS book_purchases (
            id TEXT PRIMARY KEY,
            student_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            book_id TEXT NOT NULL REFERENCES books(id) ON DELETE CASCADE,
            purchase_type TEXT NOT NULL DEFAULT 'digital'
                CHECK(purchase_type IN ('digital', 'physical')),
            price_paid REAL NOT NULL DEFAULT 0,
            delivery_status TEXT CHECK(delivery_status IN (
                'pending', 'processing', 'shipped', 'in_transit', 'delivered', 'cancelled'
            )),
            tracking_number TEXT,
            carrier_name TEXT,
            shipping_address TEXT,
            shipped_at TEXT,
            delivered_at TEXT,
            purchased_at TEXT NOT NULL,
            UNIQUE(student_id, book_id)
        );

        -- Payments
        CREATE TABLE IF NOT EXISTS payments (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            stripe_payment_id TEXT UNIQUE,
            amount REAL NOT NULL,
            currency TEXT NOT NULL DEFAULT 'usd',
            status TEXT NOT NULL DEFAULT 'completed',
            payment_type TEXT NOT NULL CHECK(payment_type IN ('course', 'book')),
            course_id TEXT REFERENCES courses(id) ON DELETE SET NULL,
            book_id TEXT REFERENCES books(id) ON DELETE SET NULL,
            platform_commission REAL NOT NULL DEFAULT 0,
            creator_earnings REAL NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS subscriptions (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            course_id TEXT REFERENCES courses(id) ON DELETE SET NULL,
            book_id TEXT REFERENCES books(id) ON DELETE SET NULL,
            stripe_subscription_id TEXT UNIQUE,
            stripe_customer_id TEXT,
            stripe_price_id TEXT,
            status TEXT NOT NULL,
            billing_cycle TEXT NOT NULL CHECK(billing_cycle IN ('monthly', 'yearly')),
            current_period_start TEXT,
            current_period_end TEXT,
            cancel_at_period_end INTEGER NOT NULL DEFAULT 0,
            canceled_at TEXT,
            platform_commission REAL NOT NULL DEFAULT 0,
            creator_earnings REAL NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS stripe_events (
            event_id TEXT PRIMARY KEY,
            event_type TEXT NOT NULL,
            processed_at TEXT NOT NULL
        );

        -- Notifications
        CREATE TABLE IF NOT EXISTS notifications (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            type TEXT NOT NULL,
            title TEXT NOT NULL,
            message TEXT NOT NULL,
            link TEXT,
            related_id TEXT,
            related_type TEXT,
            read INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        );

        -- Announcements
        CREATE TABLE IF NOT EXISTS announcements (
            id TEXT PRIMARY KEY,
            author_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            course_id TEXT REFERENCES courses(id) ON DELETE CASCADE,
            title TEXT NOT NULL,
            content TEXT NOT NULL,
            priority TEXT NOT NULL DEFAULT 'normal'
                CHECK(priority IN ('low', 'normal', 'high', 'urgent')),
            target_audience TEXT NOT NULL DEFAULT 'all'
                CHECK(target_audience IN ('all', 'students', 'instructors', 'admins', 'course_students')),
            is_published INTEGER NOT NULL DEFAULT 0,
            published_at TEXT,
            expires_at TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        -- Help center
        CREATE TABLE IF NOT EXISTS help_categories (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            slug TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            icon TEXT,
            section TEXT NOT NULL CHECK(section IN ('website', 'courses')),
            order_index INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            UNIQUE(section, slug)
        );

        CREATE TABLE IF NOT EXISTS help_articles (
            id TEXT PRIMARY KEY,
            category_id TEXT REFERENCES help_categories(id) ON DELETE SET NULL,
            author_id TEXT REFERENCES profiles(id) ON DELETE SET NULL,
            title TEXT NOT NULL,
            slug TEXT NOT NULL UNIQUE,
            content TEXT NOT NULL,
            excerpt TEXT NOT NULL DEFAULT '',
            section TEXT NOT NULL CHECK(section IN ('website', 'courses')),
            status TEXT NOT NULL DEFAULT 'draft' CHECK(status IN ('draft', 'published')),
            order_index INTEGER NOT NULL DEFAULT 0,
            view_count INTEGER NOT NULL DEFAULT 0,
            helpful_count INTEGER NOT NULL DEFAULT 0,
            not_helpful_count INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS help_article_tags (
            article_id TEXT NOT NULL REFERENCES help_articles(id) ON DELETE CASCADE,
            tag TEXT NOT NULL,
            PRIMARY KEY (article_id, tag)
        );

        CREATE TABLE IF NOT EXISTS help_article_feedback (
            id TEXT PRIMARY KEY,
            article_id TEXT NOT NULL REFERENCES help_articles(id) ON DELETE CASCADE,
            user_id TEXT REFERENCES profiles(id) ON DELETE CASCADE,
            is_helpful INTEGER NOT NULL,
            feedback_text TEXT,
            created_at TEXT NOT NULL
        );

        -- Meetings
        CREATE TABLE IF NOT EXISTS meetings (
            id TEXT PRIMARY KEY,
            instructor_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            course_id TEXT REFERENCES courses(id) ON DELETE CASCADE,
            title TEXT NOT NULL,
            description TEXT,
            room_name TEXT NOT NULL UNIQUE,
            meeting_url TEXT NOT NULL,
            meeting_token TEXT NOT NULL,
            start_time TEXT NOT NULL,
            end_time TEXT,
            participant_type TEXT NOT NULL DEFAULT 'all'
                CHECK(participant_type IN ('all', 'selected')),
            max_participants INTEGER NOT NULL DEFAULT 50,
            recording_enabled INTEGER NOT NULL DEFAULT 0,
            recording_url TEXT,
            status TEXT NOT NULL DEFAULT 'scheduled'
                CHECK(status IN ('scheduled', 'live', 'ended', 'cancelled')),
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS meeting_participants (
            meeting_id TEXT NOT NULL REFERENCES meetings(id) ON DELETE CASCADE,
            student_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            status TEXT NOT NULL DEFAULT 'invited' CHECK(status IN ('invited', 'joined')),
            joined_at TEXT,
            PRIMARY KEY (meeting_id, student_id)
        );

        -- Lesson notes
        CREATE TABLE IF NOT EXISTS lesson_notes (
            id TEXT PRIMARY KEY,
            student_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            lesson_id TEXT NOT NULL REFERENCES lessons(id) ON DELETE CASCADE,
            content TEXT NOT NULL,
            is_question INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS note_replies (
            id TEXT PRIMARY KEY,
            note_id TEXT NOT NULL REFERENCES lesson_notes(id) ON DELETE CASCADE,
            author_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            content TEXT NOT NULL,
            created_at TEXT NOT NULL
        );

        -- Website settings, values stored as text and typed by setting_type
        CREATE TABLE IF NOT EXISTS website_settings (
            setting_key TEXT PRIMARY KEY,
            setting_value TEXT NOT NULL,
            setting_type TEXT NOT NULL DEFAULT 'string'
                CHECK(setting_type IN ('string', 'boolean', 'number', 'json')),
            category TEXT NOT NULL DEFAULT 'general',
            is_public INTEGER NOT NULL DEFAULT 1,
            updated_at TEXT
        );

        INSERT OR IGNORE INTO website_settings (setting_key, setting_value, setting_type, category, is_public)
        VALUES
            ('site_name', 'Learning Platform', 'string', 'general', 1),
            ('site_description', 'Your gateway to world-class education', 'string', 'general', 1),
            ('contact_email', 'support@example.com', 'string', 'contact', 1),
            ('contact_phone', '', 'string', 'contact', 0),
            ('support_hours', 'Mon-Fri, 9AM-6PM EST', 'string', 'contact', 1),
            ('maintenance_mode', 'false', 'boolean', 'maintenance', 1),
            ('maintenance_message', 'We are currently performing maintenance. Please check back soon.',
                'string', 'maintenance', 1),
            ('enable_courses', 'true', 'boolean', 'features', 1),
            ('enable_books', 'true', 'boolean', 'features', 1),
            ('enable_meetings', 'true', 'boolean', 'features', 1),
            ('enable_subscriptions', 'true', 'boolean', 'features', 1),
            ('enable_certificates', 'true', 'boolean', 'features', 1),
            ('enable_ratings', 'true', 'boolean', 'features', 1),
            ('currency_symbol', '$', 'string', 'payments', 1);

        -- Indexes
        CREATE INDEX IF NOT EXISTS idx_courses_instructor ON courses(instructor_id);
        CREATE INDEX IF NOT EXISTS idx_courses_status ON courses(status);
        CREATE INDEX IF NOT EXISTS idx_modules_course ON modules(course_id);
        CREATE INDEX IF NOT EXISTS idx_lessons_module ON lessons(module_id);
        CREATE INDEX IF NOT EXISTS idx_enrollments_course ON enrollments(course_id);
        CREATE INDEX IF NOT EXISTS idx_payments_course ON payments(course_id);
        CREATE INDEX IF NOT EXISTS idx_subscriptions_user ON subscriptions(user_id);
        CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications(user_id, read);
        CREATE INDEX IF NOT EXISTS idx_meetings_course ON meetings(course_id);
        CREATE INDEX IF NOT EXISTS idx_lesson_notes_lesson ON lesson_notes(lesson_id, student_id);
        """
    )

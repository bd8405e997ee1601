"""User accounts: registration, approval workflow and profile management."""

from __future__ import annotations

import sqlite3

import structlog

from lms.core.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from lms.core.notifications import notify_best_effort
from lms.db import profiles_repository
from lms.db.profiles_repository import ProfileRecord
from lms.utils.validators import validate_email

logger = structlog.get_logger(__name__)

ROLES = ("student", "instructor", "admin")
SELF_SERVICE_ROLES = ("student", "instructor")
STATUSES = ("pending", "approved", "inactive")


def register_user(
    email: str,
    full_name: str,
    role: str = "student",
    user_id: str | None = None,
    allow_admin: bool = False,
) -> ProfileRecord:
    """Create a profile.

    Students are approved immediately; instructors wait for an admin. Admin
    accounts are only created with ``allow_admin`` (CLI bootstrap).

    Args:
        email: Login email
        full_name: Display name
        role: Requested role
        user_id: Identity provider subject to reuse as profile id
        allow_admin: Permit role='admin' and approve it immediately

    Returns:
        The created ProfileRecord

    Raises:
        ValidationError: Bad email, name or role
        ConflictError: Email already registered
    """
    if not validate_email(email or ""):
        raise ValidationError(f"Invalid email: {email!r}")
    if not full_name or not full_name.strip():
        raise ValidationError("Full name is required")
    allowed = ROLES if allow_admin else SELF_SERVICE_ROLES
    if role not in allowed:
        raise ValidationError(f"Role must be one of: {', '.join(allowed)}")

    status = "pending" if role == "instructor" and not allow_admin else "approved"

    try:
        profile = profiles_repository.insert_profile(
            email=email,
            full_name=full_name.strip(),
            role=role,
            status=status,
            profile_id=user_id,
        )
    except sqlite3.IntegrityError:
        raise ConflictError(f"Email '{email}' is already registered") from None

    logger.info("accounts.registered", user_id=profile.id, role=role, status=status)

    if profile.status == "pending":
        admin_ids = profiles_repository.list_profile_ids(role="admin")
        notify_best_effort(
            admin_ids,
            "new_user_pending",
            "New Instructor Awaiting Approval",
            f"{profile.full_name} ({profile.email}) registered as an instructor and needs approval.",
            link="/admin/users",
            related_id=profile.id,
            related_type="profile",
        )

    return profile


def get_user(user_id: str) -> ProfileRecord:
    profile = profiles_repository.get_profile(user_id)
    if profile is None:
        raise NotFoundError("User", user_id)
    return profile


def find_by_email(email: str) -> ProfileRecord | None:
    return profiles_repository.get_profile_by_email(email)


def list_users(role: str | None = None, status: str | None = None) -> list[ProfileRecord]:
    if role and role not in ROLES:
        raise ValidationError(f"Unknown role: {role}")
    if status and status not in STATUSES:
        raise ValidationError(f"Unknown status: {status}")
    return profiles_repository.list_profiles(role=role, status=status)


def approve_user(admin: ProfileRecord, user_id: str) -> ProfileRecord:
    """Approve a pending account."""
    _require_admin(admin)
    profile = get_user(user_id)

    profiles_repository.update_profile_status(user_id, "approved")
    logger.info("accounts.approved", user_id=user_id, by=admin.id)

    notify_best_effort(
        [user_id],
        "account_approved",
        "Account Approved",
        "Your account has been approved. You now have full access to the platform.",
        link="/dashboard",
        related_id=user_id,
        related_type="profile",
    )
    return get_user(profile.id)


def reject_user(admin: ProfileRecord, user_id: str) -> ProfileRecord:
    """Reject an account; it becomes inactive."""
    _require_admin(admin)
    profile = get_user(user_id)
    if profile.id == admin.id:
        raise ValidationError("Admins cannot reject themselves")

    profiles_repository.update_profile_status(user_id, "inactive")
    logger.info("accounts.rejected", user_id=user_id, by=admin.id)

    notify_best_effort(
        [user_id],
        "account_rejected",
        "Account Not Approved",
        "Your account request was not approved. Contact support for details.",
        related_id=user_id,
        related_type="profile",
    )
    return get_user(profile.id)


def update_profile(user: ProfileRecord, full_name: str) -> ProfileRecord:
    if not full_name or not full_name.strip():
        raise ValidationError("Full name is required")
    profiles_repository.update_profile_name(user.id, full_name.strip())
    return get_user(user.id)


def delete_user(admin: ProfileRecord, user_id: str) -> None:
    """Delete an account and everything it owns."""
    _require_admin(admin)
    if user_id == admin.id:
        raise ValidationError("Admins cannot delete themselves")
    if not profiles_repository.delete_profile(user_id):
        raise NotFoundError("User", user_id)
    logger.info("accounts.deleted", user_id=user_id, by=admin.id)


def _require_admin(user: ProfileRecord) -> None:
    if user.role != "admin" or not user.is_approved:
        raise PermissionDeniedError("Admin access required")

"""Request dependencies: caller identity, role guards and site switches.

Authentication happens upstream; the identity provider forwards the
authenticated subject in the X-User-Id header.
"""

from __future__ import annotations

from typing import Callable

from fastapi import Depends, Header, HTTPException, Request, status

from lms.core import site_settings
from lms.core.errors import FeatureDisabledError, MaintenanceModeError
from lms.db import profiles_repository
from lms.db.profiles_repository import ProfileRecord

USER_HEADER = "X-User-Id"

# Reachable while the site is under maintenance
MAINTENANCE_EXEMPT_PREFIXES = ("/health", "/api/settings/website", "/api/webhooks/")


def get_optional_user(
    x_user_id: str | None = Header(default=None, alias=USER_HEADER),
) -> ProfileRecord | None:
    """Caller profile, or None for anonymous requests."""
    if not x_user_id:
        return None
    return profiles_repository.get_profile(x_user_id)


def get_current_user(
    x_user_id: str | None = Header(default=None, alias=USER_HEADER),
) -> ProfileRecord:
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    user = profiles_repository.get_profile(x_user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user


def require_role(*roles: str) -> Callable[..., ProfileRecord]:
    """Dependency admitting approved users with one of the given roles."""

    def dependency(user: ProfileRecord = Depends(get_current_user)) -> ProfileRecord:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {' or '.join(roles)}",
            )
        if not user.is_approved:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Account is {user.status}",
            )
        return user

    return dependency


require_student = require_role("student")
require_instructor = require_role("instructor", "admin")
require_admin = require_role("admin")


def check_maintenance(request: Request, user: ProfileRecord | None = Depends(get_optional_user)) -> None:
    """App-wide guard: during maintenance only admins get through."""
    if request.url.path.startswith(MAINTENANCE_EXEMPT_PREFIXES):
        return
    if user is not None and user.role == "admin":
        return
    if site_settings.is_maintenance_mode():
        raise MaintenanceModeError(site_settings.maintenance_message())


def require_feature(feature: str) -> Callable[[], None]:
    """Dependency rejecting requests while a platform feature is switched off."""

    def dependency() -> None:
        if not site_settings.is_feature_enabled(feature):
            raise FeatureDisabledError(feature)

    return dependency

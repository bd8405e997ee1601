"""User settings and website settings endpoints."""

from fastapi import APIRouter, Depends

from lms.core import notifications, site_settings
from lms.db.profiles_repository import ProfileRecord
from lms.web.dependencies import get_current_user, get_optional_user, require_admin
from lms.web.schemas import (
    SettingsResponse,
    SettingsUpdate,
    WebsiteSettingResponse,
    WebsiteSettingsResponse,
)

router = APIRouter(prefix="/api/settings", tags=["settings"])
website_router = APIRouter(prefix="/api/settings/website", tags=["settings"])


@router.get("", response_model=SettingsResponse)
async def get_settings(user: ProfileRecord = Depends(get_current_user)) -> SettingsResponse:
    """Preferences merged over the defaults."""
    return SettingsResponse(settings=notifications.get_settings(user.id))


@router.put("", response_model=SettingsResponse)
async def update_settings(
    body: SettingsUpdate,
    user: ProfileRecord = Depends(get_current_user),
) -> SettingsResponse:
    return SettingsResponse(settings=notifications.update_settings(user.id, body.settings))


@website_router.get("", response_model=WebsiteSettingsResponse)
async def get_website_settings(
    category: str | None = None,
    user: ProfileRecord | None = Depends(get_optional_user),
) -> WebsiteSettingsResponse:
    """Typed settings; anyone but an admin sees the public ones only."""
    settings, rows = site_settings.get_settings(user, category=category)
    return WebsiteSettingsResponse(
        settings=settings,
        raw=[WebsiteSettingResponse.model_validate(row) for row in rows],
    )


@website_router.post("", response_model=WebsiteSettingsResponse)
async def update_website_settings(
    body: SettingsUpdate,
    user: ProfileRecord = Depends(require_admin),
) -> WebsiteSettingsResponse:
    site_settings.update_settings(user, body.settings)
    settings, rows = site_settings.get_settings(user)
    return WebsiteSettingsResponse(
        settings=settings,
        raw=[WebsiteSettingResponse.model_validate(row) for row in rows],
    )

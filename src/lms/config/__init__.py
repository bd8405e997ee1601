"""Configuration package for the LMS."""

from lms.config.app_config import (
    AppConfig,
    NotificationsConfig,
    PaymentsConfig,
    clear_config_cache,
    load_app_config,
    set_app_config,
)

__all__ = [
    "AppConfig",
    "NotificationsConfig",
    "PaymentsConfig",
    "clear_config_cache",
    "load_app_config",
    "set_app_config",
]

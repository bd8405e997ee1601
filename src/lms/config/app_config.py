"""Application configuration loader.

Loads centralized configuration from data/config/lms_config_v1.yaml
with fallback to built-in defaults. Secrets are never stored in the file;
the file names the environment variables that hold them.

Usage:
    from lms.config.app_config import load_app_config

    config = load_app_config()
    rate = config.payments.platform_commission_rate
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("data/config/lms_config_v1.yaml")
DB_PATH_ENV = "LMS_DB_PATH"
DEFAULT_REPORTS_DIR = "data/reports"


@dataclass
class PaymentsConfig:
    """Payment provider and revenue-split settings."""

    currency: str = "usd"
    platform_commission_rate: float = 0.20
    stripe_secret_key_env: str = "STRIPE_SECRET_KEY"
    stripe_webhook_secret_env: str = "STRIPE_WEBHOOK_SECRET"
    success_path: str = "/checkout/success?session_id={CHECKOUT_SESSION_ID}"
    cancel_path: str = "/checkout/cancel"

    def get_secret_key(self) -> str | None:
        """Get the Stripe API key from the environment."""
        return os.environ.get(self.stripe_secret_key_env) or None

    def get_webhook_secret(self) -> str | None:
        """Get the Stripe webhook signing secret from the environment."""
        return os.environ.get(self.stripe_webhook_secret_env) or None

    @property
    def stripe_enabled(self) -> bool:
        return self.get_secret_key() is not None


@dataclass
class NotificationsConfig:
    """Reminder windows for scheduled notifications."""

    expiring_window_days: int = 7
    urgent_window_days: int = 3
    default_page_size: int = 50


@dataclass
class AppConfig:
    """Application-wide configuration."""

    app_url: str = "http://localhost:3000"
    database_path: str = "db/lms.db"
    cron_secret_env: str = "CRON_SECRET"
    payments: PaymentsConfig = field(default_factory=PaymentsConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)
    paths: dict[str, str] = field(default_factory=dict)

    def get_cron_secret(self) -> str | None:
        """Get the shared secret guarding scheduled endpoints."""
        return os.environ.get(self.cron_secret_env) or None

    def get_db_path(self) -> Path:
        """Database path, honoring the LMS_DB_PATH override."""
        return Path(os.environ.get(DB_PATH_ENV) or self.database_path)

    def get_reports_dir(self) -> Path:
        """Where the CLI writes generated reports."""
        return Path(self.paths.get("reports_dir") or DEFAULT_REPORTS_DIR)


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "app_url": "http://localhost:3000",
        "database_path": "db/lms.db",
        "cron_secret_env": "CRON_SECRET",
        "payments": {
            "currency": "usd",
            "platform_commission_rate": 0.20,
            "stripe_secret_key_env": "STRIPE_SECRET_KEY",
            "stripe_webhook_secret_env": "STRIPE_WEBHOOK_SECRET",
        },
        "notifications": {
            "expiring_window_days": 7,
            "urgent_window_days": 3,
            "default_page_size": 50,
        },
        "paths": {
            "config_dir": "data/config",
            "reports_dir": DEFAULT_REPORTS_DIR,
        },
    }


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    defaults = _get_defaults()

    pdata = {**defaults["payments"], **(data.get("payments") or {})}
    rate = float(pdata["platform_commission_rate"])
    if not 0.0 <= rate <= 1.0:
        raise ValueError(f"platform_commission_rate must be in [0, 1], got {rate}")

    payments = PaymentsConfig(
        currency=pdata["currency"],
        platform_commission_rate=rate,
        stripe_secret_key_env=pdata["stripe_secret_key_env"],
        stripe_webhook_secret_env=pdata["stripe_webhook_secret_env"],
    )
    if "success_path" in pdata:
        payments.success_path = pdata["success_path"]
    if "cancel_path" in pdata:
        payments.cancel_path = pdata["cancel_path"]

    ndata = {**defaults["notifications"], **(data.get("notifications") or {})}
    notifications = NotificationsConfig(
        expiring_window_days=int(ndata["expiring_window_days"]),
        urgent_window_days=int(ndata["urgent_window_days"]),
        default_page_size=int(ndata["default_page_size"]),
    )

    return AppConfig(
        app_url=data.get("app_url", defaults["app_url"]).rstrip("/"),
        database_path=data.get("database_path", defaults["database_path"]),
        cron_secret_env=data.get("cron_secret_env", defaults["cron_secret_env"]),
        payments=payments,
        notifications=notifications,
        paths={**defaults["paths"], **(data.get("paths") or {})},
    )


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Load application config, falling back to defaults.

    Args:
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    data: dict[str, Any]

    if CONFIG_FILE.exists():
        logger.debug("loading_app_config", source=str(CONFIG_FILE))
        data = yaml.safe_load(CONFIG_FILE.read_text(encoding="utf-8")) or {}
    else:
        logger.info("using_default_config")
        data = _get_defaults()

    _cached_config = _parse_config(data)
    return _cached_config


def set_app_config(config: AppConfig) -> None:
    """Replace the cached configuration (tests, embedding)."""
    global _cached_config
    _cached_config = config


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None

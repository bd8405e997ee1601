"""Tests for website settings, maintenance mode and feature switches (F6)."""

import pytest

from lms.core import site_settings
from lms.core.errors import PermissionDeniedError, ValidationError
from lms.db.website_settings_repository import SettingRecord


def setting(value: str, setting_type: str) -> SettingRecord:
    return SettingRecord("k", value, setting_type, "general", True, None)


class TestValues:
    @pytest.mark.parametrize(
        "value, setting_type, expected",
        [
            ("true", "boolean", True),
            ("yes", "boolean", False),
            ("3", "number", 3),
            ("2.5", "number", 2.5),
            ('{"a": 1}', "json", {"a": 1}),
            ("not json", "json", {}),
            ("hello", "string", "hello"),
        ],
    )
    def test_parse(self, value, setting_type, expected):
        assert site_settings.parse_value(setting(value, setting_type)) == expected

    def test_serialize_rejects_wrong_type(self):
        with pytest.raises(ValidationError):
            site_settings.serialize_value("boolean", "maintenance_mode", "yes")
        with pytest.raises(ValidationError):
            site_settings.serialize_value("number", "limit", True)


class TestReadAndUpdate:
    def test_defaults_seeded(self, db):
        settings, rows = site_settings.get_settings(None)
        assert settings["maintenance_mode"] is False
        assert settings["enable_books"] is True
        assert [r.category for r in rows] == sorted(r.category for r in rows)

    def test_private_settings_for_admins_only(self, admin, student):
        public, _ = site_settings.get_settings(student)
        everything, _ = site_settings.get_settings(admin)
        assert "contact_phone" not in public
        assert "contact_phone" in everything

    def test_category_filter(self, admin):
        settings, _ = site_settings.get_settings(admin, category="maintenance")
        assert set(settings) == {"maintenance_mode", "maintenance_message"}

    def test_update(self, admin):
        settings = site_settings.update_settings(admin, {"site_name": "Academy", "enable_books": False})
        assert settings["site_name"] == "Academy"
        assert not site_settings.is_feature_enabled("books")

    def test_unknown_key_changes_nothing(self, admin):
        with pytest.raises(ValidationError):
            site_settings.update_settings(admin, {"site_name": "Academy", "shoe_size": 44})
        assert site_settings.get_settings(admin)[0]["site_name"] == "Learning Platform"

    def test_empty_payload(self, admin):
        with pytest.raises(ValidationError):
            site_settings.update_settings(admin, {})

    def test_admin_only(self, instructor):
        with pytest.raises(PermissionDeniedError):
            site_settings.update_settings(instructor, {"site_name": "Mine"})

    def test_unknown_feature_is_enabled(self, db):
        assert site_settings.is_feature_enabled("forums")

    def test_maintenance_message_default(self, admin):
        site_settings.update_settings(admin, {"maintenance_message": ""})
        assert site_settings.maintenance_message() == site_settings.DEFAULT_MAINTENANCE_MESSAGE


class TestWebsiteSettingsEndpoints:
    def test_public_read(self, client):
        response = client.get("/api/settings/website")
        assert response.status_code == 200
        assert response.json()["settings"]["site_name"] == "Learning Platform"
        assert "contact_phone" not in response.json()["settings"]

    def test_admin_update(self, client, admin, as_user):
        response = client.post(
            "/api/settings/website",
            json={"settings": {"support_hours": "24/7"}},
            headers=as_user(admin),
        )
        assert response.status_code == 200
        assert response.json()["settings"]["support_hours"] == "24/7"

    def test_update_requires_admin(self, client, student, as_user):
        response = client.post(
            "/api/settings/website",
            json={"settings": {"site_name": "Mine"}},
            headers=as_user(student),
        )
        assert response.status_code == 403


class TestMaintenanceMode:
    @pytest.fixture
    def maintenance(self, admin):
        site_settings.update_settings(admin, {"maintenance_mode": True, "maintenance_message": "Back at noon"})

    def test_blocks_visitors(self, client, maintenance, student, as_user):
        for headers in ({}, as_user(student)):
            response = client.get("/api/courses", headers=headers)
            assert response.status_code == 503
            assert response.json() == {"detail": "Back at noon"}

    def test_admins_pass(self, client, maintenance, admin, as_user):
        assert client.get("/api/courses", headers=as_user(admin)).status_code == 200

    def test_exempt_paths(self, client, maintenance):
        assert client.get("/health").status_code == 200
        assert client.get("/api/settings/website").json()["settings"]["maintenance_mode"] is True
        # Stripe deliveries still reach the webhook
        assert client.post("/api/webhooks/stripe", content=b"{}").status_code == 400


class TestFeatureSwitches:
    def test_disabled_router(self, client, admin, student, as_user):
        site_settings.update_settings(admin, {"enable_books": False})
        response = client.get("/api/books")
        assert response.status_code == 403
        assert response.json() == {"detail": "The books feature is currently disabled"}
        assert client.get("/api/meetings", headers=as_user(student)).status_code == 200

    def test_disabled_endpoints(self, client, admin, course):
        site_settings.update_settings(admin, {"enable_ratings": False, "enable_certificates": False})
        assert client.get(f"/api/courses/{course.id}/rating").status_code == 403
        assert client.get("/api/enrollments/certificates/verify/CERT-1").status_code == 403
        assert client.get(f"/api/courses/{course.id}").status_code == 200

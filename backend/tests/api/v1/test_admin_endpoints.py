"""Tests for the admin and cron catalog refresh endpoints."""

import pytest

from mememe.core.config import get_settings
from tests.fixtures.templates import make_template

ADMIN_URL = "/api/v1/admin/templates/refresh"
CRON_URL = "/api/v1/cron/refresh-templates"
AUTH = {"Authorization": "Bearer admin-token"}


@pytest.fixture
def provider(provider):
    provider.templates = [
        make_template("1", "Drake Hotline Bling", captions=1000),
        make_template("2", "Two Buttons", captions=500),
    ]
    return provider


def use_settings(client, settings):
    client.app.dependency_overrides[get_settings] = lambda: settings


class TestAdminRefresh:
    def test_admin_not_configured_returns_503(self, api_client, settings):
        use_settings(api_client, settings)

        response = api_client.post(ADMIN_URL, headers=AUTH)

        assert response.status_code == 503
        assert response.json()["detail"] == "Admin functionality not configured"

    @pytest.mark.parametrize(
        "headers",
        [{}, {"Authorization": "Bearer wrong"}, {"Authorization": "admin-token"}],
    )
    def test_bad_credentials_return_401(self, api_client, headers):
        response = api_client.post(ADMIN_URL, headers=headers)

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_cold_cache_is_refreshed(self, api_client, provider):
        response = api_client.post(ADMIN_URL, headers=AUTH)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Successfully refreshed template cache with 2 templates"
        assert body["data"]["templates"] == 2
        assert body["data"]["sources"]["provider_only"] == 2
        assert body["data"]["previous_cache"]["cached"] is False
        assert body["data"]["cache_cleared"] is False
        assert body["timestamp"].endswith("Z")
        assert provider.calls == 1

    def test_fresh_cache_is_kept(self, api_client, provider):
        api_client.post(ADMIN_URL, headers=AUTH)

        response = api_client.post(ADMIN_URL, headers=AUTH)

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert "still fresh (0.0 hours old)" in body["message"]
        assert body["data"]["duration"] == 0
        assert body["data"]["templates"] == 2
        assert provider.calls == 1

    def test_force_refreshes_fresh_cache(self, api_client, provider):
        api_client.post(ADMIN_URL, headers=AUTH)

        response = api_client.post(ADMIN_URL, headers=AUTH, params={"force": "true"})

        assert response.json()["data"]["previous_cache"]["cached"] is True
        assert provider.calls == 2

    def test_clear_empties_cache_before_refresh(self, api_client, provider):
        api_client.post(ADMIN_URL, headers=AUTH)

        response = api_client.post(ADMIN_URL, headers=AUTH, params={"clear": "true"})

        body = response.json()
        assert body["data"]["cache_cleared"] is True
        assert body["data"]["previous_cache"]["templates"] == 2
        assert provider.calls == 2

    def test_failed_refresh_returns_500(self, api_client, provider):
        provider.should_fail = True

        response = api_client.post(ADMIN_URL, headers=AUTH)

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Template cache refresh failed"
        assert body["error"]
        assert body["data"] is None


class TestCronRefresh:
    def test_unknown_caller_is_forbidden(self, api_client):
        response = api_client.get(CRON_URL)

        assert response.status_code == 403

    @pytest.mark.parametrize(
        "headers",
        [
            {"User-Agent": "vercel-cron/1.0"},
            {"User-Agent": "Vercel-Cron/1.0"},
            {"Host": "localhost:8000"},
        ],
    )
    def test_scheduler_or_localhost_allowed(self, api_client, headers):
        response = api_client.get(CRON_URL, headers=headers)

        assert response.status_code == 200
        assert response.json()["data"]["templates"] == 2

    def test_cron_secret_required_when_configured(self, api_client, api_settings):
        use_settings(api_client, api_settings.model_copy(update={"cron_secret": "tick"}))

        denied = api_client.get(CRON_URL, headers={"User-Agent": "vercel-cron/1.0"})
        allowed = api_client.get(CRON_URL, headers={"Authorization": "Bearer tick"})

        assert denied.status_code == 401
        assert allowed.status_code == 200

    def test_cron_always_refreshes(self, api_client, provider):
        headers = {"User-Agent": "vercel-cron/1.0"}

        api_client.get(CRON_URL, headers=headers)
        second = api_client.get(CRON_URL, headers=headers)

        assert second.json()["data"]["previous_cache"]["cached"] is True
        assert provider.calls == 2

"""
Tests for admin authentication and acting-user headers.
"""

from unittest.mock import patch

import pytest


def test_admin_endpoint_without_api_key_works_in_dev_mode(client):
    """No ADMIN_API_KEY configured in dev: maintenance endpoints are open."""
    response = client.get("/admin/events")
    assert response.status_code == 200


def test_admin_endpoint_with_correct_api_key(client):
    with patch("app.api.auth.settings.admin_api_key", "test-secret-key-123"):
        response = client.get("/admin/events")
        assert response.status_code == 401
        assert "Missing" in response.json()["detail"]

        response = client.get("/admin/events", headers={"X-Admin-API-Key": "test-secret-key-123"})
        assert response.status_code == 200


def test_admin_endpoint_with_wrong_api_key(client):
    with patch("app.api.auth.settings.admin_api_key", "test-secret-key-123"):
        response = client.get("/admin/metrics", headers={"X-Admin-API-Key": "wrong-key"})
        assert response.status_code == 403
        assert "Invalid" in response.json()["detail"]


def test_admin_endpoints_refuse_production_without_key(client):
    with patch("app.api.auth.settings.app_env", "production"), patch(
        "app.api.auth.settings.admin_api_key", None
    ):
        with pytest.raises(RuntimeError, match="ADMIN_API_KEY"):
            client.get("/admin/events")


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"X-Actor-Id": "sales-1"},
        {"X-Actor-Role": "sales"},
        {"X-Actor-Id": "  ", "X-Actor-Role": "sales"},
        {"X-Actor-Id": "sales-1", "X-Actor-Role": "operations"},
    ],
)
def test_actor_headers_required(client, headers):
    response = client.get("/notifications", headers=headers)
    assert response.status_code == 401


def test_actor_role_is_case_insensitive(client):
    response = client.get("/notifications", headers={"X-Actor-Id": "sales-1", "X-Actor-Role": "Sales"})
    assert response.status_code == 200

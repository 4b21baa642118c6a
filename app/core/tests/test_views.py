"""
Tests for the health check endpoint.
"""

from unittest.mock import AsyncMock, patch

import pytest
from django.db import DatabaseError

HEALTH_URL = "/health/"


@pytest.mark.django_db
class TestHealthCheck:
    def test_healthy(self, client):
        response = client.get(HEALTH_URL)

        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "database": "connected",
            "channel_layer": "connected",
        }

    def test_database_down_is_unhealthy(self, client):
        with patch("core.views.connection.cursor", side_effect=DatabaseError("down")):
            response = client.get(HEALTH_URL)

        assert response.status_code == 503
        assert response.json()["database"] == "disconnected"

    def test_channel_layer_down_only_degrades(self, client):
        with patch("core.views.get_channel_layer") as get_layer:
            get_layer.return_value.group_send = AsyncMock(
                side_effect=ConnectionError("redis")
            )
            response = client.get(HEALTH_URL)

        assert response.status_code == 200
        assert response.json()["channel_layer"] == "disconnected"

    def test_no_channel_layer(self, client):
        with patch("core.views.get_channel_layer", return_value=None):
            response = client.get(HEALTH_URL)

        assert response.json()["channel_layer"] == "not_configured"

#!/usr/bin/env python3
"""Unit tests for DeviceManager.

Tests cover:
    - updateDeviceProperties request body
    - Input validation
    - Wrapping of API failures in UpdateError
"""
import sys
from unittest.mock import AsyncMock, MagicMock

import pytest

sys.path.insert(0, str(__file__).rsplit("/tests", 1)[0])
from src.autopilot.api.client import GraphClient
from src.autopilot.api.device_manager import DeviceManager
from src.autopilot.api.exceptions import NotFoundError, UpdateError, ValidationError


@pytest.fixture
def mock_client():
    client = MagicMock(spec=GraphClient)
    client.post = AsyncMock(return_value={})
    return client


@pytest.fixture
def manager(mock_client):
    return DeviceManager(mock_client)


class TestDeviceManagerInit:
    def test_manager_requires_client(self, mock_client):
        assert DeviceManager(mock_client).client is mock_client

    def test_endpoint_constant(self):
        assert DeviceManager.ENDPOINT == "/deviceManagement/windowsAutopilotDeviceIdentities"


class TestUpdateDisplayName:
    """Test update_display_name error wrapping."""

    @pytest.mark.asyncio
    async def test_posts_display_name(self, manager, mock_client):
        await manager.update_display_name("abc-123", "LAPTOP-01")

        mock_client.post.assert_awaited_once_with(
            "/deviceManagement/windowsAutopilotDeviceIdentities/abc-123/updateDeviceProperties",
            json_body={"displayName": "LAPTOP-01"},
        )

    @pytest.mark.asyncio
    async def test_requires_device_id(self, manager, mock_client):
        with pytest.raises(ValidationError):
            await manager.update_display_name("  ", "LAPTOP-01")
        mock_client.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, manager, mock_client):
        with pytest.raises(UpdateError):
            await manager.update_display_name("abc-123", "   ")
        mock_client.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self, manager, mock_client):
        cause = NotFoundError("POST /x failed with HTTP 404")
        mock_client.post = AsyncMock(side_effect=cause)

        with pytest.raises(UpdateError) as exc:
            await manager.update_display_name("abc-123", "LAPTOP-01")

        assert exc.value.device_id == "abc-123"
        assert exc.value.cause is cause
        assert exc.value.message.startswith("Failed to set display name 'LAPTOP-01'")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

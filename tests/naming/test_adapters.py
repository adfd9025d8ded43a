"""Tests for the Graph-backed naming adapters."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.autopilot.api.auth import TokenManager
from src.autopilot.api.client import GraphClient
from src.autopilot.api.device_identities import AutopilotDeviceSyncer
from src.autopilot.api.device_manager import DeviceManager
from src.autopilot.api.exceptions import FetchError, ServerError, UpdateError
from src.autopilot.naming.adapters.graph_directory import GraphDeviceDirectory, to_remote_device
from src.autopilot.naming.adapters.graph_name_updater import GraphNameUpdater
from src.autopilot.naming.domain.entities import ApplyStatus


class TestToRemoteDevice:
    def test_maps_graph_fields(self):
        device = to_remote_device({
            "id": "a1b2",
            "serialNumber": "5CG001",
            "displayName": "LAPTOP-01",
            "model": "Surface Laptop 5",
            "manufacturer": "Microsoft Corporation",
            "groupTag": "Sales",
            "enrollmentState": "enrolled",
            "lastContactedDateTime": "2024-05-01T10:00:00Z",
        })

        assert device.id == "a1b2"
        assert device.serial_number == "5CG001"
        assert device.current_name == "LAPTOP-01"
        assert device.group_tag == "Sales"
        assert device.last_contacted == "2024-05-01T10:00:00Z"

    def test_null_display_name_is_empty(self):
        device = to_remote_device({"id": "a1", "serialNumber": "SN", "displayName": None})
        assert device.current_name == ""

    def test_missing_id_returns_none(self):
        assert to_remote_device({"serialNumber": "SN"}) is None


class TestGraphDeviceDirectory:
    @pytest.fixture
    def syncer(self):
        return MagicMock(spec=AutopilotDeviceSyncer)

    @pytest.mark.asyncio
    async def test_fetch_maps_and_skips_unusable(self, syncer):
        syncer.fetch_all_devices = AsyncMock(return_value=[
            {"id": "a1", "serialNumber": "SN1", "displayName": ""},
            {"serialNumber": "SN-NO-ID"},
            {"id": "a3", "serialNumber": "SN3", "displayName": "PC-3"},
        ])

        devices = await GraphDeviceDirectory(syncer).fetch_all_devices()

        assert [d.id for d in devices] == ["a1", "a3"]

    @pytest.mark.asyncio
    async def test_api_failure_becomes_fetch_error(self, syncer):
        cause = ServerError("unavailable", status_code=503)
        syncer.fetch_all_devices = AsyncMock(side_effect=cause)

        with pytest.raises(FetchError) as exc:
            await GraphDeviceDirectory(syncer).fetch_all_devices()

        assert exc.value.cause is cause


class TestGraphNameUpdater:
    @pytest.fixture
    def manager(self):
        manager = MagicMock(spec=DeviceManager)
        manager.update_display_name = AsyncMock(return_value=None)
        return manager

    @pytest.mark.asyncio
    async def test_applied(self, manager):
        outcome = await GraphNameUpdater(manager).apply_name("d1", "PC-1", "SN1")

        assert outcome.status == ApplyStatus.APPLIED
        manager.update_display_name.assert_awaited_once_with("d1", "PC-1")

    @pytest.mark.asyncio
    async def test_simulate_sends_nothing(self, manager):
        outcome = await GraphNameUpdater(manager, simulate=True).apply_name("d1", "PC-1", "SN1")

        assert outcome.status == ApplyStatus.NOT_APPLIED
        manager.update_display_name.assert_not_called()

    @pytest.mark.asyncio
    async def test_declined_confirmation(self, manager):
        confirm = MagicMock(return_value=False)

        outcome = await GraphNameUpdater(manager, confirm=confirm).apply_name("d1", "PC-1", "SN1")

        confirm.assert_called_once_with("SN1", "d1", "PC-1")
        assert outcome.status == ApplyStatus.NOT_APPLIED
        manager.update_display_name.assert_not_called()

    @pytest.mark.asyncio
    async def test_accepted_confirmation(self, manager):
        updater = GraphNameUpdater(manager, confirm=MagicMock(return_value=True))

        outcome = await updater.apply_name("d1", "PC-1", "SN1")

        assert outcome.status == ApplyStatus.APPLIED

    @pytest.mark.asyncio
    async def test_update_error_becomes_failed_outcome(self, manager):
        manager.update_display_name = AsyncMock(
            side_effect=UpdateError("Failed to set display name 'PC-1': Server error", device_id="d1")
        )

        outcome = await GraphNameUpdater(manager).apply_name("d1", "PC-1", "SN1")

        assert outcome.status == ApplyStatus.ERROR
        assert outcome.error == "Failed to set display name 'PC-1': Server error"

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_failed_outcome(self, manager):
        manager.update_display_name = AsyncMock(side_effect=RuntimeError("session closed"))

        outcome = await GraphNameUpdater(manager).apply_name("d1", "PC-1", "SN1")

        assert outcome.status == ApplyStatus.ERROR
        assert outcome.error == "session closed"

    @pytest.mark.asyncio
    async def test_graph_rejection_text_reaches_outcome(self):
        token_manager = MagicMock(spec=TokenManager)
        token_manager.get_token = AsyncMock(return_value="access-token")
        client = GraphClient(token_manager)

        response = MagicMock()
        response.status = 400
        response.headers = {}
        response.text = AsyncMock(
            return_value='{"error":{"code":"BadRequest","message":"Display name exceeds 15 characters"}}'
        )
        response.__aenter__ = AsyncMock(return_value=response)
        response.__aexit__ = AsyncMock(return_value=None)
        client._session = MagicMock()
        client._session.request = MagicMock(return_value=response)

        updater = GraphNameUpdater(DeviceManager(client))
        outcome = await updater.apply_name("d1", "LAPTOP-WITH-A-LONG-NAME", "SN1")

        assert outcome.status == ApplyStatus.ERROR
        assert outcome.error.startswith("Failed to set display name 'LAPTOP-WITH-A-LONG-NAME'")
        assert outcome.error.endswith("Display name exceeds 15 characters")
        client._session.request.assert_called_once()

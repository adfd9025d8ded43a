#!/usr/bin/env python3
"""Display name updates for Autopilot device identities.

API Details:
    - Endpoint: POST /deviceManagement/windowsAutopilotDeviceIdentities/{id}/updateDeviceProperties
    - Body: {"displayName": "<name>"}
    - Returns 204 No Content on success
    - The name is applied when the device next runs the out-of-box
      experience; devices already provisioned keep their computer name

Example:
    async with GraphClient(token_manager) as client:
        manager = DeviceManager(client)
        await manager.update_display_name("3f2a...", "LAPTOP-01")
"""
import logging

from .client import GraphClient
from .exceptions import AutopilotError, UpdateError, ValidationError

logger = logging.getLogger(__name__)


class DeviceManager:
    """Write side of the Autopilot directory."""

    ENDPOINT = "/deviceManagement/windowsAutopilotDeviceIdentities"

    def __init__(self, client: GraphClient):
        self.client = client

    async def update_display_name(self, device_id: str, display_name: str) -> None:
        """Set the display name of one device identity.

        Raises:
            ValidationError: If device_id is blank (nothing is sent)
            UpdateError: If the name is blank, or Graph rejected the update
                or could not be reached. The original error is the cause and
                its message, Graph's explanation included, is carried over.
        """
        if not device_id or not str(device_id).strip():
            raise ValidationError("A device identity ID is required", field="device_id")
        if not display_name or not display_name.strip():
            raise UpdateError("Display name must not be blank", device_id=device_id)

        try:
            await self.client.post(
                f"{self.ENDPOINT}/{device_id}/updateDeviceProperties",
                json_body={"displayName": display_name},
            )
        except AutopilotError as e:
            raise UpdateError(
                f"Failed to set display name '{display_name}': {e.message}",
                device_id=device_id,
                cause=e,
            ) from e

        logger.info(f"Display name '{display_name}' set on device identity {device_id}")

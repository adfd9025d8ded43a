#!/usr/bin/env python3
"""Windows Autopilot device identity retrieval.

Read side of the Autopilot directory: fetches every device identity
registered in the tenant through GraphClient.

Example:
    async with GraphClient(token_manager) as client:
        syncer = AutopilotDeviceSyncer(client)
        devices = await syncer.fetch_all_devices()
"""
import logging

from .client import AUTOPILOT_PAGINATION, GraphClient

logger = logging.getLogger(__name__)


class AutopilotDeviceSyncer:
    """Fetches Autopilot device identities from Microsoft Graph."""

    ENDPOINT = "/deviceManagement/windowsAutopilotDeviceIdentities"

    def __init__(self, client: GraphClient):
        self.client = client

    async def fetch_all_devices(self) -> list[dict]:
        """Fetch all device identities, following every nextLink.

        Returns:
            Device identity dictionaries as returned by Graph.
        """
        devices = await self.client.fetch_all(
            self.ENDPOINT,
            config=AUTOPILOT_PAGINATION,
        )
        logger.info(f"Fetched {len(devices):,} Autopilot device identities")
        return devices

"""Microsoft Graph device directory adapter.

This adapter wraps AutopilotDeviceSyncer to implement the
IDeviceDirectory interface.
"""

import logging
from typing import Optional

from ...api.device_identities import AutopilotDeviceSyncer
from ...api.exceptions import AutopilotError, FetchError
from ..domain.entities import RemoteDevice
from ..domain.ports import IDeviceDirectory

logger = logging.getLogger(__name__)


def to_remote_device(item: dict) -> Optional[RemoteDevice]:
    """Map a windowsAutopilotDeviceIdentity payload to a RemoteDevice.

    Returns None for records without an id, which cannot be updated.
    """
    device_id = item.get("id")
    if not device_id:
        return None
    return RemoteDevice(
        id=str(device_id),
        serial_number=item.get("serialNumber") or "",
        current_name=item.get("displayName") or "",
        model=item.get("model"),
        manufacturer=item.get("manufacturer"),
        group_tag=item.get("groupTag"),
        enrollment_state=item.get("enrollmentState"),
        last_contacted=item.get("lastContactedDateTime"),
    )


class GraphDeviceDirectory(IDeviceDirectory):
    """Adapter reading the Autopilot directory through Graph.

    This adapter:
    - Fetches the full snapshot via AutopilotDeviceSyncer
    - Maps API payloads to RemoteDevice
    - Translates any transport or API failure to FetchError
    """

    def __init__(self, syncer: AutopilotDeviceSyncer):
        self.syncer = syncer

    async def fetch_all_devices(self) -> list[RemoteDevice]:
        try:
            items = await self.syncer.fetch_all_devices()
        except AutopilotError as e:
            logger.error(f"Failed to fetch Autopilot devices: {e}")
            raise FetchError(f"Failed to fetch Autopilot devices: {e.message}", cause=e) from e

        devices = []
        for item in items:
            device = to_remote_device(item)
            if device is None:
                logger.warning(f"Skipping device identity without an id: {item.get('serialNumber')}")
                continue
            devices.append(device)

        logger.info(f"Directory snapshot holds {len(devices):,} devices")
        return devices

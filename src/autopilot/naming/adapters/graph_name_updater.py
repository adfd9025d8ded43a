"""Microsoft Graph name updater adapter.

This adapter wraps DeviceManager to implement the INameUpdater interface.
"""

import logging
from typing import Callable, Optional

from ...api.device_manager import DeviceManager
from ...api.exceptions import AutopilotError
from ..domain.entities import ApplyOutcome
from ..domain.ports import INameUpdater

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[str, str, str], bool]


class GraphNameUpdater(INameUpdater):
    """Adapter applying display names through DeviceManager.

    This adapter:
    - Skips the request in simulate-only mode
    - Asks the optional confirm callback before each update
    - Converts every failure into ApplyOutcome.failed() so one device
      never stops the batch

    Attributes:
        simulate: When True no request is sent
        confirm: Callable(serial, device_id, name) -> bool; returning False
            leaves the device untouched
    """

    def __init__(
        self,
        device_manager: DeviceManager,
        *,
        simulate: bool = False,
        confirm: Optional[ConfirmCallback] = None,
    ):
        self.manager = device_manager
        self.simulate = simulate
        self.confirm = confirm

    async def apply_name(
        self,
        device_id: str,
        desired_name: str,
        serial_number: str = "",
    ) -> ApplyOutcome:
        if self.simulate:
            logger.info(f"[simulate] Would set '{desired_name}' on {serial_number or device_id}")
            return ApplyOutcome.not_applied()

        if self.confirm is not None and not self.confirm(serial_number, device_id, desired_name):
            logger.info(f"Update of {serial_number or device_id} declined")
            return ApplyOutcome.not_applied()

        try:
            await self.manager.update_display_name(device_id, desired_name)
        except Exception as e:
            logger.error(f"Failed to set '{desired_name}' on {serial_number or device_id}: {e}")
            message = e.message if isinstance(e, AutopilotError) else str(e)
            return ApplyOutcome.failed(message or type(e).__name__)

        return ApplyOutcome.applied()

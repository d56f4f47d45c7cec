import asyncio
import logging
from typing import Iterable, List, Optional

from pydantic import BaseModel

from samsung_tv_bridge.domain.devices.models import DeviceRecord
from samsung_tv_bridge.domain.errors import PairingError
from samsung_tv_bridge.domain.ports import RemoteControlPort

logger = logging.getLogger(__name__)


class PairingResult(BaseModel):
    """Outcome of one pairing attempt."""
    device: DeviceRecord
    token: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None and bool(self.token)


class PairingCoordinator:
    """Obtains an authorization token from every freshly discovered device."""

    def __init__(self, remote: RemoteControlPort):
        self.remote = remote

    @staticmethod
    def is_eligible(device: DeviceRecord) -> bool:
        """Only devices seen in the current pass and not ignored are paired."""
        return device.discovered and not device.ignore

    async def pair(self, devices: Iterable[DeviceRecord]) -> List[PairingResult]:
        """
        Pair with every eligible device concurrently.

        A failing device never stops the others. Successful results carry
        the device record with the new token applied; the caller is
        responsible for persisting them.

        Args:
            devices: Records from the latest reconciliation pass

        Returns:
            One result per eligible device
        """
        eligible = [device for device in devices if self.is_eligible(device)]
        if not eligible:
            return []
        return list(await asyncio.gather(*(self._pair_device(device) for device in eligible)))

    async def _pair_device(self, device: DeviceRecord) -> PairingResult:
        try:
            token = await self.remote.get_pairing(device)
            if not token:
                raise PairingError("device returned no token")
        except Exception as e:
            logger.warning(
                f'Did not receive pairing token from "{device.display_name}" ({device.model_name}), '
                f'usn: "{device.usn}": {str(e)}. Accept the connection on the TV and restart to retry.'
            )
            return PairingResult(device=device, error=str(e) or e.__class__.__name__)

        logger.info(f'Paired with "{device.display_name}" ({device.model_name}), usn: "{device.usn}"')
        updated = device.model_copy(update={"token": token})
        return PairingResult(device=updated, token=token)

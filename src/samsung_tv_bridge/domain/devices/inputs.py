import logging
import re
from typing import List, Sequence

from samsung_tv_bridge.domain.devices.apps import lookup_app
from samsung_tv_bridge.domain.devices.keys import parse_keys
from samsung_tv_bridge.domain.devices.models import (
    DeviceRecord, InputAction, InputConfig, InputSource, InputSourceType
)
from samsung_tv_bridge.domain.ports import RemoteControlPort

logger = logging.getLogger(__name__)

DIVIDER_LABEL = "-"
TV_LABEL = "TV"

HDMI_KEY = re.compile(r"^KEY_HDMI[0-4]?$")


def classify_keys(keys: Sequence[str]) -> InputSourceType:
    """A key sequence is an HDMI source only if it is a single HDMI key."""
    if len(keys) == 1 and HDMI_KEY.match(keys[0]):
        return InputSourceType.HDMI
    return InputSourceType.OTHER


class InputSourceResolver:
    """Builds the ordered input source list of a device."""

    def __init__(self, remote: RemoteControlPort):
        self.remote = remote

    def resolve(self, device: DeviceRecord) -> List[InputSource]:
        """
        Build the input sources for a device.

        Index 0 is the divider that doubles as the resting "live TV" indicator,
        index 1 switches to the tuner, and the configured inputs follow in order.

        Args:
            device: The device whose configured inputs are resolved

        Returns:
            List of input sources, never empty
        """
        sources = [
            InputSource(label=DIVIDER_LABEL, type=InputSourceType.OTHER),
            InputSource(label=TV_LABEL, type=InputSourceType.TUNER, action=self.remote.open_tv),
        ]
        for config in device.inputs:
            sources.append(self._resolve_input(device, config))
        return sources

    def _resolve_input(self, device: DeviceRecord, config: InputConfig) -> InputSource:
        app_id = lookup_app(config.keys)
        if app_id is not None:
            logger.debug(f'Input "{config.name}" of "{device.display_name}" launches app {app_id}')
            return InputSource(
                label=config.name,
                type=InputSourceType.APPLICATION,
                action=self._open_app_action(app_id),
            )

        keys = parse_keys(config.keys, device)
        if not keys:
            logger.warning(f'Input "{config.name}" of "{device.display_name}" has no valid keys')
        return InputSource(
            label=config.name,
            type=classify_keys(keys),
            action=self._send_keys_action(keys),
        )

    def _open_app_action(self, app_id: str) -> InputAction:
        async def open_app(device: DeviceRecord) -> None:
            await self.remote.open_app(device, app_id)
        return open_app

    def _send_keys_action(self, keys: List[str]) -> InputAction:
        async def send_keys(device: DeviceRecord) -> None:
            await self.remote.send_keys(device, keys)
        return send_keys

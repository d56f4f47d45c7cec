import asyncio
import logging
from functools import partial
from typing import Any, Dict, Optional

from samsung_tv_bridge.domain.devices.capabilities import has_capability
from samsung_tv_bridge.domain.devices.control_point import ControlPoint
from samsung_tv_bridge.domain.devices.inputs import InputSourceResolver
from samsung_tv_bridge.domain.devices.models import (
    Active, Characteristic, DeviceRecord, RemoteKey, VolumeControlType, VolumeSelector
)
from samsung_tv_bridge.domain.devices.registry import DeviceRegistry
from samsung_tv_bridge.domain.devices.scheduler import TaskScheduler
from samsung_tv_bridge.domain.errors import (
    InvalidControlValueError, InvalidInputSourceError, UnknownDeviceError
)
from samsung_tv_bridge.domain.ports import RemoteControlPort

logger = logging.getLogger(__name__)

DEFAULT_REVERT_DELAY = 3.0

# Remote key -> RemoteControlPort method; keys mapped to None are accepted and ignored
REMOTE_KEY_TABLE: Dict[RemoteKey, Optional[str]] = {
    RemoteKey.REWIND: "rewind",
    RemoteKey.FAST_FORWARD: "fast_forward",
    RemoteKey.NEXT_TRACK: None,
    RemoteKey.PREVIOUS_TRACK: None,
    RemoteKey.ARROW_UP: "arrow_up",
    RemoteKey.ARROW_DOWN: "arrow_down",
    RemoteKey.ARROW_LEFT: "arrow_left",
    RemoteKey.ARROW_RIGHT: "arrow_right",
    RemoteKey.SELECT: "select",
    RemoteKey.BACK: "back",
    RemoteKey.EXIT: "exit",
    RemoteKey.PLAY_PAUSE: None,
    RemoteKey.INFORMATION: "info",
}


def _to_int(value: Any, characteristic: Characteristic) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidControlValueError(f'Invalid value for "{characteristic.value}": {value!r}')


def _to_percent(value: Any, characteristic: Characteristic) -> int:
    number = _to_int(value, characteristic)
    if not 0 <= number <= 100:
        raise InvalidControlValueError(f'"{characteristic.value}" must be between 0 and 100, got {number}')
    return number


def _to_bool(value: Any, characteristic: Characteristic) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.lower() in ("true", "false", "1", "0", "on", "off"):
        return value.lower() in ("true", "1", "on")
    raise InvalidControlValueError(f'Invalid value for "{characteristic.value}": {value!r}')


class ControlDispatcher:
    """
    Turns control intents into remote-control calls.

    ``build_control_point`` decides from the device's capabilities which
    characteristics are offered and in which direction. Every handler looks
    up the current device record before calling the remote, so records
    updated by a later reconciliation pass are picked up. Remote errors
    propagate to the caller and are never retried.
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        remote: RemoteControlPort,
        scheduler: TaskScheduler,
        revert_delay: float = DEFAULT_REVERT_DELAY
    ):
        self.registry = registry
        self.remote = remote
        self.scheduler = scheduler
        self.revert_delay = revert_delay
        self.resolver = InputSourceResolver(remote)
        self._control_points: Dict[str, ControlPoint] = {}
        self._pending_reverts: Dict[str, asyncio.TimerHandle] = {}
        self._selection_locks: Dict[str, asyncio.Lock] = {}

    def build_control_point(self, usn: str) -> ControlPoint:
        """
        Create the control point of a device.

        Args:
            usn: USN of a device known to the registry

        Returns:
            The control point with every offered characteristic bound

        Raises:
            UnknownDeviceError: If the registry does not know the device
        """
        device = self._device(usn)
        cp = ControlPoint(usn, device.display_name)

        cp.on_get(Characteristic.ACTIVE, partial(self.get_active, usn))
        cp.on_set(Characteristic.ACTIVE, partial(self.set_active, usn))

        if has_capability(device, "GetBrightness"):
            cp.on_get(Characteristic.BRIGHTNESS, partial(self.get_brightness, usn))
        if has_capability(device, "SetBrightness"):
            cp.on_set(Characteristic.BRIGHTNESS, partial(self.set_brightness, usn))

        if has_capability(device, "GetVolume"):
            cp.volume_control_type = VolumeControlType.ABSOLUTE
            cp.on_get(Characteristic.VOLUME, partial(self.get_volume, usn))
            cp.on_set(Characteristic.VOLUME, partial(self.set_volume, usn))
        else:
            cp.volume_control_type = VolumeControlType.RELATIVE
        cp.on_set(Characteristic.VOLUME_SELECTOR, partial(self.step_volume, usn))

        cp.on_get(Characteristic.MUTE, partial(self.get_mute, usn))
        cp.on_set(Characteristic.MUTE, partial(self.set_mute, usn))

        cp.on_set(Characteristic.REMOTE_KEY, partial(self.press_key, usn))

        cp.input_sources = self.resolver.resolve(device)
        cp.on_get(Characteristic.ACTIVE_IDENTIFIER, partial(self.get_active_identifier, usn))
        cp.on_set(Characteristic.ACTIVE_IDENTIFIER, partial(self.set_active_identifier, usn))
        cp.values[Characteristic.ACTIVE_IDENTIFIER] = 0

        self._control_points[usn] = cp
        self._selection_locks.setdefault(usn, asyncio.Lock())
        logger.debug(
            f'Built control point for "{device.display_name}": '
            f"{[c.value for c in cp.characteristics]}, volume {cp.volume_control_type.name}"
        )
        return cp

    def cancel_pending_reverts(self) -> None:
        for handle in self._pending_reverts.values():
            handle.cancel()
        self._pending_reverts.clear()

    # ------------- Power -------------

    async def get_active(self, usn: str) -> Active:
        device = self._device(usn)
        return Active.ACTIVE if await self.remote.get_active(device) else Active.INACTIVE

    async def set_active(self, usn: str, value: Any) -> None:
        try:
            state = Active(_to_int(value, Characteristic.ACTIVE))
        except ValueError:
            raise InvalidControlValueError(f'Invalid value for "active": {value!r}')
        device = self._device(usn)
        await self.remote.set_active(device, state == Active.ACTIVE)
        self._publish(usn, Characteristic.ACTIVE, state)

    # ------------- Picture -------------

    async def get_brightness(self, usn: str) -> int:
        return await self.remote.get_brightness(self._device(usn))

    async def set_brightness(self, usn: str, value: Any) -> None:
        brightness = _to_percent(value, Characteristic.BRIGHTNESS)
        await self.remote.set_brightness(self._device(usn), brightness)
        self._publish(usn, Characteristic.BRIGHTNESS, brightness)

    # ------------- Sound -------------

    async def get_volume(self, usn: str) -> int:
        return await self.remote.get_volume(self._device(usn))

    async def set_volume(self, usn: str, value: Any) -> None:
        volume = _to_percent(value, Characteristic.VOLUME)
        device = self._device(usn)
        await self.remote.set_volume(device, volume)
        self._publish(usn, Characteristic.MUTE, False)
        self._publish(usn, Characteristic.VOLUME, await self.remote.get_volume(device))

    async def step_volume(self, usn: str, value: Any) -> None:
        try:
            direction = VolumeSelector(_to_int(value, Characteristic.VOLUME_SELECTOR))
        except ValueError:
            raise InvalidControlValueError(f'Invalid value for "volume_selector": {value!r}')
        device = self._device(usn)
        if direction == VolumeSelector.INCREMENT:
            await self.remote.volume_up(device)
        else:
            await self.remote.volume_down(device)
        self._publish(usn, Characteristic.MUTE, False)
        if has_capability(device, "GetVolume"):
            self._publish(usn, Characteristic.VOLUME, await self.remote.get_volume(device))

    async def get_mute(self, usn: str) -> bool:
        device = self._device(usn)
        if not has_capability(device, "GetMute"):
            return False
        return await self.remote.get_mute(device)

    async def set_mute(self, usn: str, value: Any) -> None:
        muted = _to_bool(value, Characteristic.MUTE)
        await self.remote.set_mute(self._device(usn), muted)
        self._publish(usn, Characteristic.MUTE, muted)

    # ------------- Keys -------------

    async def press_key(self, usn: str, value: Any) -> None:
        number = _to_int(value, Characteristic.REMOTE_KEY)
        device = self._device(usn)
        try:
            key = RemoteKey(number)
        except ValueError:
            logger.debug(f'Ignoring unknown remote key {number} for "{device.display_name}"')
            return

        method = REMOTE_KEY_TABLE.get(key)
        if method is None:
            logger.debug(f'Remote key {key.name} is not supported by "{device.display_name}"')
            return
        await getattr(self.remote, method)(device)

    # ------------- Inputs -------------

    async def get_active_identifier(self, usn: str) -> int:
        cp = self._control_points.get(usn)
        if cp is None:
            return 0
        return cp.values.get(Characteristic.ACTIVE_IDENTIFIER, 0)

    async def set_active_identifier(self, usn: str, value: Any) -> None:
        """
        Select an input source.

        The selection is shown for ``revert_delay`` seconds and then the
        identifier falls back to 0, the resting indicator. A new selection
        cancels a pending fallback. Selections on one device run one at a
        time, in the order they were issued.
        """
        index = _to_int(value, Characteristic.ACTIVE_IDENTIFIER)
        cp = self._control_points.get(usn)
        if cp is None:
            raise UnknownDeviceError(f'No control point for usn: "{usn}"')
        if not 0 <= index < len(cp.input_sources):
            raise InvalidInputSourceError(
                f'Input source {index} does not exist on "{cp.name}" '
                f"(0..{len(cp.input_sources) - 1})"
            )

        async with self._selection_locks[usn]:
            self._cancel_revert(usn)
            device = self._device(usn)
            source = cp.input_sources[index]
            if source.action is not None:
                logger.debug(f'Switching "{device.display_name}" to input "{source.label}"')
                await source.action(device)

            cp.update_value(Characteristic.ACTIVE_IDENTIFIER, index)
            # At most one revert per device may be pending
            self._cancel_revert(usn)
            if index != 0:
                self._pending_reverts[usn] = self.scheduler.call_later(
                    self.revert_delay, partial(self._revert_input, usn)
                )

    # ------------- Internal Methods -------------

    def _revert_input(self, usn: str) -> None:
        self._pending_reverts.pop(usn, None)
        self._publish(usn, Characteristic.ACTIVE_IDENTIFIER, 0)

    def _cancel_revert(self, usn: str) -> None:
        handle = self._pending_reverts.pop(usn, None)
        if handle is not None:
            handle.cancel()

    def _device(self, usn: str) -> DeviceRecord:
        device = self.registry.get(usn)
        if device is None:
            raise UnknownDeviceError(f'Unknown device usn: "{usn}"')
        return device

    def _publish(self, usn: str, characteristic: Characteristic, value: Any) -> None:
        cp = self._control_points.get(usn)
        if cp is not None:
            cp.update_value(characteristic, value)

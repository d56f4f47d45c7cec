import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from samsung_tv_bridge.domain.devices.models import (
    Characteristic, InputSource, VolumeControlType
)
from samsung_tv_bridge.domain.errors import UnsupportedControlError

logger = logging.getLogger(__name__)

Getter = Callable[[], Awaitable[Any]]
Setter = Callable[[Any], Awaitable[None]]
ValueCallback = Callable[[str, Characteristic, Any], None]


class HandlerBinding:
    """Getter/setter pair registered for one characteristic."""

    def __init__(self, getter: Optional[Getter] = None, setter: Optional[Setter] = None):
        self.getter = getter
        self.setter = setter


class ControlPoint:
    """
    Per-device control surface.

    Holds the handler bindings the dispatcher registered for the device, the
    last published value of every characteristic and the subscribers that are
    told about value changes.
    """

    def __init__(self, usn: str, name: str):
        self.usn = usn
        self.name = name
        self.volume_control_type = VolumeControlType.NONE
        self.input_sources: List[InputSource] = []
        self.values: Dict[Characteristic, Any] = {}
        self._bindings: Dict[Characteristic, HandlerBinding] = {}
        self._subscribers: List[ValueCallback] = []

    # ------------- Registration -------------

    def on_get(self, characteristic: Characteristic, getter: Getter) -> None:
        self._bindings.setdefault(characteristic, HandlerBinding()).getter = getter

    def on_set(self, characteristic: Characteristic, setter: Setter) -> None:
        self._bindings.setdefault(characteristic, HandlerBinding()).setter = setter

    def subscribe(self, callback: ValueCallback) -> None:
        """Register a callback called as ``callback(usn, characteristic, value)``."""
        self._subscribers.append(callback)

    # ------------- Invocation -------------

    def can_get(self, characteristic: Characteristic) -> bool:
        binding = self._bindings.get(characteristic)
        return binding is not None and binding.getter is not None

    def can_set(self, characteristic: Characteristic) -> bool:
        binding = self._bindings.get(characteristic)
        return binding is not None and binding.setter is not None

    @property
    def characteristics(self) -> List[Characteristic]:
        return list(self._bindings.keys())

    async def get(self, characteristic: Characteristic) -> Any:
        """
        Run the getter of a characteristic.

        Raises:
            UnsupportedControlError: If no getter is bound
        """
        if not self.can_get(characteristic):
            raise UnsupportedControlError(f'"{characteristic.value}" cannot be read on "{self.name}"')
        return await self._bindings[characteristic].getter()

    async def set(self, characteristic: Characteristic, value: Any) -> None:
        """
        Run the setter of a characteristic.

        Raises:
            UnsupportedControlError: If no setter is bound
        """
        if not self.can_set(characteristic):
            raise UnsupportedControlError(f'"{characteristic.value}" cannot be written on "{self.name}"')
        await self._bindings[characteristic].setter(value)

    def update_value(self, characteristic: Characteristic, value: Any) -> None:
        """Publish a new value and notify subscribers."""
        self.values[characteristic] = value
        logger.debug(f'[{self.name}] {characteristic.value} = {value}')
        for callback in list(self._subscribers):
            try:
                callback(self.usn, characteristic, value)
            except Exception as e:
                logger.error(f"Error notifying value change for {self.usn}: {str(e)}")

    def describe(self) -> Dict[str, Any]:
        """Summarize the control point for the HTTP surface."""
        return {
            "usn": self.usn,
            "name": self.name,
            "volume_control_type": self.volume_control_type.name,
            "input_sources": [
                {"index": idx, "label": source.label, "type": source.type.name}
                for idx, source in enumerate(self.input_sources)
            ],
            "characteristics": {
                characteristic.value: {
                    "get": self.can_get(characteristic),
                    "set": self.can_set(characteristic),
                    "value": self.values.get(characteristic),
                }
                for characteristic in self._bindings
            },
        }

from typing import Any, Awaitable, Callable, Dict, List, Optional, Set
from enum import Enum, IntEnum
from pydantic import BaseModel, Field

# Default pause between two key presses sent to the same device, in milliseconds
DEFAULT_DELAY_MS = 500


class InputConfig(BaseModel):
    """User-defined input source: a display name plus an app name or a key string."""
    name: str
    keys: str


class DeviceDescriptor(BaseModel):
    """Raw device description as produced by network discovery."""
    usn: str
    friendly_name: Optional[str] = None
    model_name: Optional[str] = None
    location: Optional[str] = None
    address: Optional[str] = None
    mac: Optional[str] = None
    capabilities: Optional[Set[str]] = None


class DeviceRecord(BaseModel):
    """Canonical description of one controllable television.

    ``usn`` is the primary key and never changes. ``discovered`` only reflects
    the current reconciliation pass and is never written to the store.
    ``capabilities`` is optional; ``None`` is treated as an empty set.
    """
    usn: str
    name: Optional[str] = None
    model_name: Optional[str] = None
    last_known_location: Optional[str] = None
    last_known_ip: Optional[str] = None
    mac: Optional[str] = None
    remote_control_port: Optional[int] = None
    token: Optional[str] = None
    delay: int = DEFAULT_DELAY_MS
    ignore: bool = False
    inputs: List[InputConfig] = Field(default_factory=list)
    disable_upnp_setters: bool = False
    discovered: bool = False
    capabilities: Optional[Set[str]] = None

    @property
    def display_name(self) -> str:
        """Name used in log messages and the control surface."""
        return self.name or self.model_name or self.usn

    @classmethod
    def from_descriptor(cls, descriptor: DeviceDescriptor) -> "DeviceRecord":
        """Create a new record for a device seen for the first time."""
        return cls(
            usn=descriptor.usn,
            name=descriptor.friendly_name,
            model_name=descriptor.model_name,
            last_known_location=descriptor.location,
            last_known_ip=descriptor.address,
            mac=descriptor.mac,
            delay=DEFAULT_DELAY_MS,
            capabilities=set(descriptor.capabilities) if descriptor.capabilities is not None else None,
            discovered=True,
        )

    def to_storage(self) -> Dict[str, Any]:
        """Serialize the record for the persisted device document."""
        data = self.model_dump(mode="json", exclude={"discovered"})
        if self.capabilities is not None:
            # Sets have no stable order; keep the stored document deterministic
            data["capabilities"] = sorted(self.capabilities)
        return data


class DeviceOverride(BaseModel):
    """Per-device configuration entry.

    Only ``usn`` is required. Fields that are explicitly present overwrite the
    merged record's fields on every reconciliation pass.
    """
    usn: str
    name: Optional[str] = None
    model_name: Optional[str] = None
    last_known_location: Optional[str] = None
    last_known_ip: Optional[str] = None
    mac: Optional[str] = None
    remote_control_port: Optional[int] = None
    token: Optional[str] = None
    delay: Optional[int] = None
    ignore: Optional[bool] = None
    inputs: Optional[List[InputConfig]] = None
    disable_upnp_setters: Optional[bool] = None

    def overrides(self) -> Dict[str, Any]:
        """Return only the fields the user actually configured."""
        return self.model_dump(exclude_unset=True, exclude={"usn"})


class Characteristic(str, Enum):
    """Controls a control point can expose."""
    ACTIVE = "active"
    BRIGHTNESS = "brightness"
    VOLUME = "volume"
    VOLUME_SELECTOR = "volume_selector"
    MUTE = "mute"
    REMOTE_KEY = "remote_key"
    ACTIVE_IDENTIFIER = "active_identifier"


class Active(IntEnum):
    INACTIVE = 0
    ACTIVE = 1


class VolumeControlType(IntEnum):
    NONE = 0
    RELATIVE = 1
    RELATIVE_WITH_CURRENT = 2
    ABSOLUTE = 3


class VolumeSelector(IntEnum):
    INCREMENT = 0
    DECREMENT = 1


class RemoteKey(IntEnum):
    """Navigation and media keys a controller can press."""
    REWIND = 0
    FAST_FORWARD = 1
    NEXT_TRACK = 2
    PREVIOUS_TRACK = 3
    ARROW_UP = 4
    ARROW_DOWN = 5
    ARROW_LEFT = 6
    ARROW_RIGHT = 7
    SELECT = 8
    BACK = 9
    EXIT = 10
    PLAY_PAUSE = 11
    INFORMATION = 15


class InputSourceType(IntEnum):
    OTHER = 0
    HOME_SCREEN = 1
    TUNER = 2
    HDMI = 3
    APPLICATION = 10


# Activation action of an input source, called with the current device record
InputAction = Callable[[DeviceRecord], Awaitable[None]]


class InputSource(BaseModel):
    """One selectable entry of a device's input list."""
    label: str
    type: InputSourceType
    action: Optional[InputAction] = Field(default=None, exclude=True)

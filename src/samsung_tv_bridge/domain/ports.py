"""Abstract ports for domain-infrastructure communication.

This module defines the interfaces (ports) that the domain layer uses to communicate
with external systems. These are implemented by adapters in the infrastructure layer.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence

from samsung_tv_bridge.domain.devices.models import DeviceDescriptor, DeviceRecord


class DiscoveryPort(ABC):
    """Port for finding televisions on the local network.

    Used by: DeviceRegistry, RefreshScheduler
    Implemented by: infrastructure/discovery/ssdp.SsdpDiscovery
    """

    @abstractmethod
    async def discover(self) -> List[DeviceDescriptor]:
        """Scan the network once.

        Returns:
            Raw descriptors of every device that answered
        """
        pass


class RemoteControlPort(ABC):
    """Port for the low-level device-control transport.

    Used by: ControlDispatcher, PairingCoordinator, InputSourceResolver, RefreshScheduler
    Implemented by: infrastructure/remote/samsung.SamsungRemote

    Every method receives the current device record and raises on failure.
    """

    @abstractmethod
    async def get_pairing(self, device: DeviceRecord) -> Optional[str]:
        """Run the pairing handshake.

        Args:
            device: The device to pair with

        Returns:
            The authorization token handed out by the device
        """
        pass

    @abstractmethod
    async def get_active(self, device: DeviceRecord) -> bool:
        """Return True if the device is reachable and switched on."""
        pass

    @abstractmethod
    async def set_active(self, device: DeviceRecord, active: bool) -> None:
        """Switch the device on or off."""
        pass

    @abstractmethod
    async def get_brightness(self, device: DeviceRecord) -> int:
        pass

    @abstractmethod
    async def set_brightness(self, device: DeviceRecord, brightness: int) -> None:
        pass

    @abstractmethod
    async def get_volume(self, device: DeviceRecord) -> int:
        pass

    @abstractmethod
    async def set_volume(self, device: DeviceRecord, volume: int) -> None:
        pass

    @abstractmethod
    async def get_mute(self, device: DeviceRecord) -> bool:
        pass

    @abstractmethod
    async def set_mute(self, device: DeviceRecord, muted: bool) -> None:
        pass

    @abstractmethod
    async def volume_up(self, device: DeviceRecord) -> None:
        pass

    @abstractmethod
    async def volume_down(self, device: DeviceRecord) -> None:
        pass

    @abstractmethod
    async def rewind(self, device: DeviceRecord) -> None:
        pass

    @abstractmethod
    async def fast_forward(self, device: DeviceRecord) -> None:
        pass

    @abstractmethod
    async def arrow_up(self, device: DeviceRecord) -> None:
        pass

    @abstractmethod
    async def arrow_down(self, device: DeviceRecord) -> None:
        pass

    @abstractmethod
    async def arrow_left(self, device: DeviceRecord) -> None:
        pass

    @abstractmethod
    async def arrow_right(self, device: DeviceRecord) -> None:
        pass

    @abstractmethod
    async def select(self, device: DeviceRecord) -> None:
        pass

    @abstractmethod
    async def back(self, device: DeviceRecord) -> None:
        pass

    @abstractmethod
    async def exit(self, device: DeviceRecord) -> None:
        pass

    @abstractmethod
    async def info(self, device: DeviceRecord) -> None:
        pass

    @abstractmethod
    async def open_app(self, device: DeviceRecord, app_id: str) -> None:
        """Launch an installed application.

        Args:
            device: The target device
            app_id: The platform application identifier
        """
        pass

    @abstractmethod
    async def open_tv(self, device: DeviceRecord) -> None:
        """Switch back to the live TV tuner."""
        pass

    @abstractmethod
    async def send_keys(self, device: DeviceRecord, keys: Sequence[str]) -> None:
        """Send a sequence of remote keys, paced by the device's delay.

        Args:
            device: The target device
            keys: Key identifiers such as ``KEY_HDMI1``
        """
        pass


class KeyValueStorePort(ABC):
    """Port for persisting JSON documents under a key.

    Used by: DeviceRegistry
    Implemented by: infrastructure/persistence/sqlite.SQLiteStateStore
    """

    @abstractmethod
    async def get_item(self, key: str) -> Optional[Any]:
        """Load the document stored under a key.

        Args:
            key: Document key

        Returns:
            The decoded document or None if nothing is stored

        Raises:
            PersistenceError: If the store cannot be read
        """
        pass

    @abstractmethod
    async def update_item(self, key: str, value: Any) -> None:
        """Replace the document stored under a key.

        The replacement is all-or-nothing: if it fails, the previous document
        is still in place.

        Args:
            key: Document key
            value: JSON-serializable document

        Raises:
            PersistenceError: If the store cannot be written
        """
        pass

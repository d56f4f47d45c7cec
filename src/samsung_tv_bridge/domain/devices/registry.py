import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from pydantic import ValidationError

from samsung_tv_bridge.domain.devices.models import DeviceDescriptor, DeviceOverride, DeviceRecord
from samsung_tv_bridge.domain.errors import PersistenceError, UnknownDeviceError
from samsung_tv_bridge.domain.ports import DiscoveryPort, KeyValueStorePort

logger = logging.getLogger(__name__)

DEVICES_KEY = "SamsungTVBridge_devices"


def merge_discovered(
    descriptors: Iterable[DeviceDescriptor],
    persisted: List[DeviceRecord]
) -> List[DeviceRecord]:
    """
    Turn this pass's discovery results into device records.

    Previously seen devices keep their persisted fields (token, name, user policy)
    and only get their network location, model name and capabilities refreshed.

    Args:
        descriptors: Raw descriptors from the current discovery pass
        persisted: Records loaded from the store

    Returns:
        One record per discovered USN, all flagged as discovered
    """
    existing_by_usn = {device.usn: device for device in persisted}
    merged: Dict[str, DeviceRecord] = {}

    for descriptor in descriptors:
        if descriptor.usn in merged:
            logger.debug(f'Ignoring duplicate discovery result for usn: "{descriptor.usn}"')
            continue

        existing = existing_by_usn.get(descriptor.usn)
        if existing:
            logger.debug(
                f'Rediscovered previously seen device "{existing.display_name}" '
                f'({descriptor.model_name}), usn: "{descriptor.usn}"'
            )
            update = {
                "model_name": descriptor.model_name,
                "last_known_location": descriptor.location,
                "last_known_ip": descriptor.address,
                "discovered": True,
            }
            if descriptor.capabilities is not None:
                update["capabilities"] = set(descriptor.capabilities)
            merged[descriptor.usn] = existing.model_copy(update=update)
        else:
            logger.debug(
                f'Discovered new device "{descriptor.friendly_name}" '
                f'({descriptor.model_name}), usn: "{descriptor.usn}"'
            )
            merged[descriptor.usn] = DeviceRecord.from_descriptor(descriptor)

    return list(merged.values())


def carry_forward(merged: List[DeviceRecord], persisted: List[DeviceRecord]) -> List[DeviceRecord]:
    """Append every persisted device that was not discovered in this pass."""
    seen = {device.usn for device in merged}
    result = list(merged)
    for device in persisted:
        if device.usn in seen:
            continue
        logger.debug(
            f'Adding not discovered, previously seen device "{device.display_name}" '
            f'({device.model_name}), usn: "{device.usn}"'
        )
        result.append(device.model_copy(update={"discovered": False}))
    return result


def apply_overrides(devices: List[DeviceRecord], overrides: Iterable[DeviceOverride]) -> List[DeviceRecord]:
    """
    Overlay user configuration onto the merged devices.

    Configured fields always win. Entries for devices that were never seen are
    logged and skipped.
    """
    result = list(devices)
    index_by_usn = {device.usn: idx for idx, device in enumerate(result)}

    for override in overrides:
        idx = index_by_usn.get(override.usn)
        if idx is None:
            logger.debug(f'Found config for unknown device usn: "{override.usn}"')
            continue

        device = result[idx]
        logger.debug(
            f'Found config for device "{device.display_name}" ({device.model_name}), usn: "{device.usn}"'
        )
        data = device.model_dump()
        data.update(override.overrides())
        result[idx] = DeviceRecord.model_validate(data)

    return result


def merge_devices(
    descriptors: Iterable[DeviceDescriptor],
    persisted: List[DeviceRecord],
    overrides: Iterable[DeviceOverride]
) -> List[DeviceRecord]:
    """Run the three merge passes: discovery, history carry-forward, configuration."""
    devices = merge_discovered(descriptors, persisted)
    devices = carry_forward(devices, persisted)
    return apply_overrides(devices, overrides)


class DeviceRegistry:
    """
    Owns the canonical set of known televisions.

    The registry merges discovery results, persisted history and configuration
    overrides, and writes the merged set back to the key/value store. All writes
    go through a single lock so two reconciliation passes never interleave.
    """

    def __init__(
        self,
        store: KeyValueStorePort,
        overrides: Optional[Iterable[DeviceOverride]] = None,
        storage_key: str = DEVICES_KEY
    ):
        """
        Initialize the DeviceRegistry.

        Args:
            store: Key/value store holding the persisted device document
            overrides: Per-device configuration entries
            storage_key: Key of the persisted device document
        """
        self._store = store
        self._overrides: List[DeviceOverride] = list(overrides or [])
        self._storage_key = storage_key
        self._devices: List[DeviceRecord] = []
        self._lock = asyncio.Lock()

    # ------------- Public API -------------

    @property
    def devices(self) -> List[DeviceRecord]:
        """Snapshot of the current merged device list."""
        return list(self._devices)

    def get(self, usn: str) -> Optional[DeviceRecord]:
        """Return the current record for a USN, or None if unknown."""
        for device in self._devices:
            if device.usn == usn:
                return device
        return None

    def set_overrides(self, overrides: Iterable[DeviceOverride]) -> None:
        """Replace the configuration overrides applied on the next pass."""
        self._overrides = list(overrides)

    async def load(self) -> List[DeviceRecord]:
        """
        Read the persisted device list.

        Returns:
            The stored records, or an empty list if nothing was stored yet

        Raises:
            PersistenceError: If the store is unreadable or the document is malformed
        """
        document = await self._store.get_item(self._storage_key)
        if document is None:
            return []

        if not isinstance(document, dict) or not isinstance(document.get("devices"), list):
            raise PersistenceError(f"Malformed device document under key '{self._storage_key}'")

        try:
            return [DeviceRecord.model_validate(item) for item in document["devices"]]
        except ValidationError as e:
            raise PersistenceError(f"Invalid device record in store: {str(e)}") from e

    async def reconcile(self, descriptors: Iterable[DeviceDescriptor]) -> List[DeviceRecord]:
        """
        Run one reconciliation pass and persist its result.

        The store is replaced as a whole. If reading or writing fails, the
        in-memory list and the stored document are both left as they were.

        Args:
            descriptors: Raw descriptors from the current discovery pass

        Returns:
            The merged device list

        Raises:
            PersistenceError: If the store cannot be read or written
        """
        async with self._lock:
            persisted = await self.load()
            merged = merge_devices(descriptors, persisted, self._overrides)
            await self._save(merged)
            self._devices = merged
            logger.info(
                f"Reconciled {len(merged)} devices "
                f"({sum(1 for d in merged if d.discovered)} discovered in this pass)"
            )
            return list(merged)

    async def refresh(self, discovery: DiscoveryPort) -> List[DeviceRecord]:
        """
        Discover devices and reconcile the result.

        A failed discovery is not fatal; it is treated as an empty scan so
        previously seen devices are still carried forward.
        """
        try:
            descriptors = await discovery.discover()
        except Exception as e:
            logger.warning(f"Device discovery failed, continuing with persisted devices only: {str(e)}")
            descriptors = []
        return await self.reconcile(descriptors)

    async def update_device(self, record: DeviceRecord) -> None:
        """
        Replace one device record and persist the full device list.

        Args:
            record: The updated record, matched by USN

        Raises:
            UnknownDeviceError: If no device with that USN is known
            PersistenceError: If the store cannot be written
        """
        async with self._lock:
            if self.get(record.usn) is None:
                raise UnknownDeviceError(f'Unknown device usn: "{record.usn}"')
            updated = [record if device.usn == record.usn else device for device in self._devices]
            await self._save(updated)
            self._devices = updated
            logger.debug(f'Updated device "{record.display_name}", usn: "{record.usn}"')

    # ------------- Internal Methods -------------

    async def _save(self, devices: List[DeviceRecord]) -> None:
        document = {"devices": [device.to_storage() for device in devices]}
        await self._store.update_item(self._storage_key, document)

from samsung_tv_bridge.domain.devices.models import DeviceRecord

SETTER_PREFIX = "Set"


def has_capability(device: DeviceRecord, capability: str) -> bool:
    """
    Check whether a device advertised a control capability during discovery.

    Setter capabilities (``SetVolume``, ``SetBrightness``, ...) are reported as
    missing when the user disabled UPnP setters for the device.

    Args:
        device: The device record
        capability: Capability name, e.g. ``GetVolume``

    Returns:
        bool: True if the capability can be used
    """
    capabilities = device.capabilities or set()
    if capability not in capabilities:
        return False
    if capability.startswith(SETTER_PREFIX) and device.disable_upnp_setters:
        return False
    return True

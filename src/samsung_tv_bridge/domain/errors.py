"""Exceptions raised by the domain layer and its adapters."""


class BridgeError(Exception):
    """Base class for all errors raised by the bridge."""


class PersistenceError(BridgeError):
    """The device store could not be read or written."""


class PairingError(BridgeError):
    """A device did not hand out a pairing token."""


class RemoteControlError(BridgeError):
    """A call to the device's remote-control interface failed."""


class UnknownDeviceError(BridgeError):
    """No device with the requested USN is known to the registry."""


class UnsupportedControlError(BridgeError):
    """The requested control direction is not offered for this device."""


class InvalidControlValueError(BridgeError):
    """A control value could not be interpreted."""


class InvalidInputSourceError(InvalidControlValueError):
    """The requested input source index does not exist."""


class ConfigurationError(BridgeError):
    """The configuration file is missing required data or is malformed."""

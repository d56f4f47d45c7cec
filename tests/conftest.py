"""
Pytest configuration for all tests.
"""

import json
import os
import sys
from typing import Any, Dict, Optional

import pytest
from unittest.mock import AsyncMock

# Add the src directory to path to allow imports without installing the package
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

from samsung_tv_bridge.domain.devices.models import DeviceDescriptor, DeviceRecord  # noqa: E402
from samsung_tv_bridge.domain.errors import PersistenceError  # noqa: E402
from samsung_tv_bridge.domain.ports import DiscoveryPort, KeyValueStorePort, RemoteControlPort  # noqa: E402

FULL_CAPABILITIES = {
    "GetVolume", "SetVolume", "GetMute", "SetMute", "GetBrightness", "SetBrightness"
}


class InMemoryStore(KeyValueStorePort):
    """Key/value store keeping JSON copies in a dict; reads and writes can be made to fail."""

    def __init__(self, documents: Optional[Dict[str, Any]] = None):
        self.documents: Dict[str, str] = {
            key: json.dumps(value) for key, value in (documents or {}).items()
        }
        self.fail_reads = False
        self.fail_writes = False
        self.writes = 0

    async def get_item(self, key: str) -> Optional[Any]:
        if self.fail_reads:
            raise PersistenceError("read failed")
        if key not in self.documents:
            return None
        return json.loads(self.documents[key])

    async def update_item(self, key: str, value: Any) -> None:
        if self.fail_writes:
            raise PersistenceError("write failed")
        self.documents[key] = json.dumps(value)
        self.writes += 1

    def document(self, key: str) -> Optional[Any]:
        return json.loads(self.documents[key]) if key in self.documents else None


class FakeHandle:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Records timers and loops instead of running them."""

    def __init__(self):
        self.timers = []
        self.loops = []
        self.cancelled_all = False

    def call_later(self, delay, callback):
        handle = FakeHandle(delay, callback)
        self.timers.append(handle)
        return handle

    def every(self, interval, coro_factory, name=None):
        self.loops.append((interval, coro_factory, name))
        return None

    async def cancel_all(self):
        self.cancelled_all = True

    @property
    def pending(self):
        return [timer for timer in self.timers if not timer.cancelled]

    def fire_pending(self):
        for timer in self.pending:
            timer.cancelled = True
            timer.callback()


def make_descriptor(usn: str = "uuid:tv-1", **kwargs) -> DeviceDescriptor:
    data = {
        "usn": usn,
        "friendly_name": "[TV] Living Room",
        "model_name": "QE55Q80",
        "location": "http://192.168.1.20:9197/dmr",
        "address": "192.168.1.20",
        "mac": "aa:bb:cc:dd:ee:ff",
        "capabilities": set(FULL_CAPABILITIES),
    }
    data.update(kwargs)
    return DeviceDescriptor(**data)


def make_record(usn: str = "uuid:tv-1", **kwargs) -> DeviceRecord:
    data = {
        "usn": usn,
        "name": "[TV] Living Room",
        "model_name": "QE55Q80",
        "last_known_location": "http://192.168.1.20:9197/dmr",
        "last_known_ip": "192.168.1.20",
        "mac": "aa:bb:cc:dd:ee:ff",
    }
    data.update(kwargs)
    return DeviceRecord(**data)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def mock_remote():
    """RemoteControlPort mock with sensible defaults for a reachable TV."""
    remote = AsyncMock(spec=RemoteControlPort)
    remote.get_pairing.return_value = "token-123"
    remote.get_active.return_value = True
    remote.get_volume.return_value = 20
    remote.get_mute.return_value = True
    remote.get_brightness.return_value = 50
    return remote


@pytest.fixture
def mock_discovery():
    discovery = AsyncMock(spec=DiscoveryPort)
    discovery.discover.return_value = [make_descriptor()]
    return discovery


@pytest.fixture
def fake_scheduler():
    return FakeScheduler()

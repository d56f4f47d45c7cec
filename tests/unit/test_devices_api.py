import asyncio

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from samsung_tv_bridge.domain.devices.dispatcher import ControlDispatcher
from samsung_tv_bridge.domain.devices.models import DeviceOverride
from samsung_tv_bridge.domain.devices.registry import DeviceRegistry
from samsung_tv_bridge.domain.errors import RemoteControlError
from samsung_tv_bridge.presentation.api.routers import devices, system
from tests.conftest import InMemoryStore, make_descriptor

USN = "uuid:tv-1"


@pytest.fixture
def api(mock_remote, mock_discovery, fake_scheduler):
    """Test client wired to a registry with one controllable and one ignored TV."""
    async def setup_registry():
        registry = DeviceRegistry(InMemoryStore(), [DeviceOverride(usn="uuid:tv-2", ignore=True)])
        await registry.reconcile([
            make_descriptor(USN, capabilities={"GetVolume", "SetVolume"}),
            make_descriptor("uuid:tv-2"),
        ])
        return registry

    registry = asyncio.run(setup_registry())
    dispatcher = ControlDispatcher(registry, mock_remote, fake_scheduler)
    control_points = {USN: dispatcher.build_control_point(USN)}

    app = FastAPI()
    app.include_router(system.router)
    app.include_router(devices.router)
    devices.initialize(registry, mock_discovery, control_points)
    system.initialize(None, registry, control_points)
    try:
        yield TestClient(app)
    finally:
        devices.initialize(None, None, None)
        system.initialize(None, None, None)


class TestDevicesApi:
    def test_root(self, api):
        response = api.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_list_devices(self, api):
        response = api.get("/devices")

        assert response.status_code == 200
        body = response.json()
        assert [d["usn"] for d in body] == [USN, "uuid:tv-2"]
        assert body[1]["ignore"] is True
        assert "token" not in body[0]

    def test_get_device(self, api):
        assert api.get(f"/devices/{USN}").json()["last_known_ip"] == "192.168.1.20"
        assert api.get("/devices/uuid:missing").status_code == 404

    def test_controls_summary(self, api):
        body = api.get(f"/devices/{USN}/controls").json()

        assert body["volume_control_type"] == "ABSOLUTE"
        assert body["characteristics"]["volume"] == {"get": True, "set": True, "value": None}
        assert body["characteristics"]["volume_selector"]["get"] is False
        assert [source["label"] for source in body["input_sources"]] == ["-", "TV"]

    def test_ignored_device_has_no_controls(self, api):
        assert api.get("/devices/uuid:tv-2/controls").status_code == 404

    def test_read_control(self, api):
        response = api.get(f"/devices/{USN}/controls/volume")

        assert response.status_code == 200
        assert response.json() == {"usn": USN, "characteristic": "volume", "value": 20}

    def test_write_control(self, api, mock_remote):
        response = api.put(f"/devices/{USN}/controls/volume", json={"value": 35})

        assert response.status_code == 200
        assert mock_remote.set_volume.await_args.args[1] == 35
        assert response.json()["value"] == 20

    def test_unsupported_direction(self, api):
        response = api.get(f"/devices/{USN}/controls/volume_selector")

        assert response.status_code == 405

    def test_invalid_value(self, api):
        assert api.put(f"/devices/{USN}/controls/volume", json={"value": "max"}).status_code == 400
        assert api.put(f"/devices/{USN}/controls/active_identifier", json={"value": 7}).status_code == 400

    def test_remote_failure(self, api, mock_remote):
        mock_remote.get_volume.side_effect = RemoteControlError("TV unreachable")

        response = api.get(f"/devices/{USN}/controls/volume")

        assert response.status_code == 502
        assert "TV unreachable" in response.json()["detail"]

    def test_unknown_characteristic(self, api):
        assert api.get(f"/devices/{USN}/controls/colour").status_code == 422

    def test_reconcile(self, api, mock_discovery):
        response = api.post("/devices/reconcile")

        assert response.status_code == 200
        body = response.json()
        assert body["devices"] == 2
        assert body["discovered"] == 1
        mock_discovery.discover.assert_awaited_once()

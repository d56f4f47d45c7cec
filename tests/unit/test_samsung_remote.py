import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from samsung_tv_bridge.domain.errors import RemoteControlError
from samsung_tv_bridge.infrastructure.remote.samsung import SamsungRemote
from async_upnp_client.exceptions import UpnpError
from samsungtvws.exceptions import ConnectionFailure
from tests.conftest import make_record

MODULE = "samsung_tv_bridge.infrastructure.remote.samsung"


def make_upnp_device(actions):
    """UPnP device double with a RenderingControl and a ConnectionManager service."""
    rendering = MagicMock()
    rendering.service_type = "urn:schemas-upnp-org:service:RenderingControl:1"
    rendering.actions = actions
    connection = MagicMock()
    connection.service_type = "urn:schemas-upnp-org:service:ConnectionManager:1"
    connection.actions = {}
    upnp_device = MagicMock()
    upnp_device.all_services = [connection, rendering]
    return upnp_device


def make_websocket(token=None):
    websocket = MagicMock()
    websocket.open = AsyncMock()
    websocket.close = AsyncMock()
    websocket.send_command = AsyncMock()
    websocket.token = token
    return websocket


class TestSamsungRemote:
    @pytest.mark.asyncio
    async def test_pairing_returns_token(self):
        websocket = make_websocket(token="abc123")
        remote = SamsungRemote(name="Bridge", pairing_timeout=20)

        with patch(f"{MODULE}.SamsungTVWSAsyncRemote", return_value=websocket) as factory:
            token = await remote.get_pairing(make_record(remote_control_port=8001))

        assert token == "abc123"
        kwargs = factory.call_args.kwargs
        assert kwargs["host"] == "192.168.1.20"
        assert kwargs["port"] == 8001
        assert kwargs["token"] is None
        assert kwargs["name"] == "Bridge"
        assert kwargs["timeout"] == 20
        websocket.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_pairing_failure_is_translated(self):
        websocket = make_websocket()
        websocket.open.side_effect = ConnectionFailure("refused")
        remote = SamsungRemote()

        with patch(f"{MODULE}.SamsungTVWSAsyncRemote", return_value=websocket):
            with pytest.raises(RemoteControlError):
                await remote.get_pairing(make_record())
        websocket.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_send_keys_uses_token_and_delay(self):
        websocket = make_websocket()
        remote = SamsungRemote()
        device = make_record(token="tok", delay=250)

        with patch(f"{MODULE}.SamsungTVWSAsyncRemote", return_value=websocket) as factory, \
                patch(f"{MODULE}.SendRemoteKey") as send_remote_key:
            send_remote_key.click.side_effect = lambda key: f"click:{key}"
            await remote.send_keys(device, ["KEY_HDMI1", "KEY_ENTER"])

        kwargs = factory.call_args.kwargs
        assert kwargs["token"] == "tok"
        assert kwargs["key_press_delay"] == 0.25
        assert [c.args[0] for c in websocket.send_command.await_args_list] == [
            "click:KEY_HDMI1", "click:KEY_ENTER"
        ]

    @pytest.mark.asyncio
    async def test_missing_ip_raises(self):
        remote = SamsungRemote()

        with pytest.raises(RemoteControlError):
            await remote.arrow_up(make_record(last_known_ip=None))

    @pytest.mark.asyncio
    async def test_power_on_without_mac_raises(self):
        remote = SamsungRemote()
        remote.get_active = AsyncMock(return_value=False)

        with pytest.raises(RemoteControlError):
            await remote.set_active(make_record(mac=None), True)

    @pytest.mark.asyncio
    async def test_power_on_sends_wake_on_lan(self):
        remote = SamsungRemote()
        remote.get_active = AsyncMock(return_value=False)

        with patch(f"{MODULE}.wakeonlan.send_magic_packet") as send_magic_packet:
            await remote.set_active(make_record(), True)

        send_magic_packet.assert_called_once_with("aa:bb:cc:dd:ee:ff")

    @pytest.mark.asyncio
    async def test_power_off_only_when_active(self):
        remote = SamsungRemote()
        remote._send = AsyncMock()
        remote.get_active = AsyncMock(return_value=False)

        await remote.set_active(make_record(), False)
        remote._send.assert_not_awaited()

        remote.get_active.return_value = True
        await remote.set_active(make_record(), False)
        assert remote._send.await_args.args[1] == ["KEY_POWER"]

    @pytest.mark.asyncio
    async def test_get_active_reads_power_state(self):
        remote = SamsungRemote()
        rest = MagicMock()
        rest.rest_device_info = AsyncMock(return_value={"device": {"PowerState": "standby"}})

        with patch(f"{MODULE}.SamsungTVAsyncRest", return_value=rest):
            assert await remote.get_active(make_record()) is False
            rest.rest_device_info.return_value = {"device": {"PowerState": "on"}}
            assert await remote.get_active(make_record()) is True
            rest.rest_device_info.return_value = {"device": {}}
            assert await remote.get_active(make_record()) is True
            rest.rest_device_info.side_effect = OSError("host unreachable")
            assert await remote.get_active(make_record()) is False
        await remote.close()

    @pytest.mark.asyncio
    async def test_volume_uses_rendering_control(self):
        remote = SamsungRemote()
        remote._call_action = AsyncMock(return_value={"CurrentVolume": 12})

        assert await remote.get_volume(make_record()) == 12
        await remote.set_volume(make_record(), 30)

        assert remote._call_action.await_args.args[1] == "SetVolume"
        assert remote._call_action.await_args.kwargs["DesiredVolume"] == 30
        assert remote._call_action.await_args.kwargs["Channel"] == "Master"

    @pytest.mark.asyncio
    async def test_set_mute_falls_back_to_key(self):
        remote = SamsungRemote()
        remote._call_action = AsyncMock(return_value={"CurrentMute": False})
        remote._send = AsyncMock()

        await remote.set_mute(make_record(capabilities={"GetMute"}), True)
        assert remote._send.await_args.args[1] == ["KEY_MUTE"]

        remote._send.reset_mock()
        await remote.set_mute(make_record(capabilities={"GetMute"}), False)
        remote._send.assert_not_awaited()

        await remote.set_mute(make_record(capabilities={"SetMute"}), True)
        assert remote._call_action.await_args.args[1] == "SetMute"
        remote._send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rendering_control_actions(self):
        get_volume = MagicMock()
        get_volume.async_call = AsyncMock(return_value={"CurrentVolume": 17})
        remote = SamsungRemote()
        remote._upnp_factory = MagicMock()
        remote._upnp_factory.async_create_device = AsyncMock(
            return_value=make_upnp_device({"GetVolume": get_volume})
        )

        assert await remote.get_volume(make_record()) == 17
        assert await remote.get_volume(make_record()) == 17

        get_volume.async_call.assert_awaited_with(InstanceID=0, Channel="Master")
        remote._upnp_factory.async_create_device.assert_awaited_once_with("http://192.168.1.20:9197/dmr")

    @pytest.mark.asyncio
    async def test_missing_action_raises(self):
        remote = SamsungRemote()
        remote._upnp_factory = MagicMock()
        remote._upnp_factory.async_create_device = AsyncMock(return_value=make_upnp_device({}))

        with pytest.raises(RemoteControlError):
            await remote.get_brightness(make_record())

    @pytest.mark.asyncio
    async def test_upnp_failure_is_translated(self):
        set_mute = MagicMock()
        set_mute.async_call = AsyncMock(side_effect=UpnpError("action failed"))
        remote = SamsungRemote()
        remote._upnp_factory = MagicMock()
        remote._upnp_factory.async_create_device = AsyncMock(
            return_value=make_upnp_device({"SetMute": set_mute})
        )

        with pytest.raises(RemoteControlError):
            await remote.set_mute(make_record(capabilities={"SetMute"}), True)
        set_mute.async_call.assert_awaited_once_with(InstanceID=0, Channel="Master", DesiredMute=True)

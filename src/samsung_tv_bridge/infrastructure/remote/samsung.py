"""
Remote control of Samsung televisions.

Keys and pairing go through the Tizen websocket remote (samsungtvws), power
state and app launching through the TV's REST API, and volume, mute and
brightness through the UPnP RenderingControl service. Power on uses
Wake-on-LAN since a TV in standby does not answer on the network.
"""

import asyncio
import logging
from typing import Any, Awaitable, Dict, Mapping, Optional, Sequence

import aiohttp
import wakeonlan
from async_upnp_client.aiohttp import AiohttpRequester
from async_upnp_client.client import UpnpService
from async_upnp_client.client_factory import UpnpFactory
from async_upnp_client.exceptions import UpnpError
from samsungtvws.async_remote import SamsungTVWSAsyncRemote
from samsungtvws.async_rest import SamsungTVAsyncRest
from samsungtvws.exceptions import ConnectionFailure, HttpApiError, ResponseError
from samsungtvws.remote import SendRemoteKey
from websockets.exceptions import WebSocketException

from samsung_tv_bridge.domain.devices.capabilities import has_capability
from samsung_tv_bridge.domain.devices.models import DeviceRecord
from samsung_tv_bridge.domain.errors import RemoteControlError
from samsung_tv_bridge.domain.ports import RemoteControlPort

logger = logging.getLogger(__name__)

DEFAULT_WS_PORT = 8002
REST_PORT = 8001
RENDERING_CONTROL = "RenderingControl"

# Errors raised by the transports that mean the call did not go through
TRANSPORT_ERRORS = (
    ConnectionFailure,
    ResponseError,
    HttpApiError,
    WebSocketException,
    aiohttp.ClientError,
    asyncio.TimeoutError,
    UpnpError,
    OSError,
)

KEY_POWER = "KEY_POWER"
KEY_MUTE = "KEY_MUTE"


class SamsungRemote(RemoteControlPort):
    """RemoteControlPort implementation for Tizen based Samsung TVs."""

    def __init__(
        self,
        name: str = "SamsungTVBridge",
        port: int = DEFAULT_WS_PORT,
        timeout: float = 5.0,
        pairing_timeout: float = 30.0
    ):
        """
        Initialize the remote.

        Args:
            name: Client name shown on the TV when it asks to allow the connection
            port: Websocket port used when a device has no remote_control_port
            timeout: Timeout of a single network call, in seconds
            pairing_timeout: Time the user has to accept the pairing request on the TV
        """
        self.name = name
        self.port = port
        self.timeout = timeout
        self.pairing_timeout = pairing_timeout
        self._session: Optional[aiohttp.ClientSession] = None
        self._upnp_factory = UpnpFactory(AiohttpRequester(timeout=timeout), non_strict=True)
        # description location -> RenderingControl service
        self._rendering_controls: Dict[str, UpnpService] = {}

    async def close(self) -> None:
        self._rendering_controls.clear()
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    # ------------- Pairing & power -------------

    async def get_pairing(self, device: DeviceRecord) -> Optional[str]:
        async def pair() -> Optional[str]:
            remote = self._websocket(device, token=None, timeout=self.pairing_timeout)
            try:
                await remote.open()
                return remote.token
            finally:
                await remote.close()

        logger.info(f'Requesting pairing with "{device.display_name}", accept the request on the TV')
        return await self._guard(device, "pairing", pair())

    async def get_active(self, device: DeviceRecord) -> bool:
        """Return True if the TV answers its REST API and reports being on."""
        if not device.last_known_ip:
            return False
        try:
            info = await self._rest(device).rest_device_info()
        except TRANSPORT_ERRORS as e:
            logger.debug(f'"{device.display_name}" is not reachable: {str(e)}')
            return False
        power_state = (info.get("device") or {}).get("PowerState")
        return power_state is None or power_state == "on"

    async def set_active(self, device: DeviceRecord, active: bool) -> None:
        is_active = await self.get_active(device)
        if active == is_active:
            return
        if active:
            if not device.mac:
                raise RemoteControlError(f'Cannot power on "{device.display_name}": MAC address unknown')
            logger.debug(f'Sending Wake-on-LAN packet to "{device.display_name}" ({device.mac})')
            try:
                wakeonlan.send_magic_packet(device.mac)
            except (OSError, ValueError) as e:
                raise RemoteControlError(f'Wake-on-LAN for "{device.display_name}" failed: {str(e)}') from e
        else:
            await self._send(device, [KEY_POWER])

    # ------------- Picture -------------

    async def get_brightness(self, device: DeviceRecord) -> int:
        result = await self._call_action(device, "GetBrightness", InstanceID=0)
        return int(result.get("CurrentBrightness", 0))

    async def set_brightness(self, device: DeviceRecord, brightness: int) -> None:
        await self._call_action(device, "SetBrightness", InstanceID=0, DesiredBrightness=brightness)

    # ------------- Sound -------------

    async def get_volume(self, device: DeviceRecord) -> int:
        result = await self._call_action(device, "GetVolume", InstanceID=0, Channel="Master")
        return int(result.get("CurrentVolume", 0))

    async def set_volume(self, device: DeviceRecord, volume: int) -> None:
        await self._call_action(device, "SetVolume", InstanceID=0, Channel="Master", DesiredVolume=volume)

    async def get_mute(self, device: DeviceRecord) -> bool:
        result = await self._call_action(device, "GetMute", InstanceID=0, Channel="Master")
        return bool(result.get("CurrentMute", False))

    async def set_mute(self, device: DeviceRecord, muted: bool) -> None:
        if has_capability(device, "SetMute"):
            await self._call_action(device, "SetMute", InstanceID=0, Channel="Master", DesiredMute=muted)
            return
        # Without SetMute the mute key toggles, so only press it when the state differs
        if has_capability(device, "GetMute") and await self.get_mute(device) == muted:
            return
        await self._send(device, [KEY_MUTE])

    async def volume_up(self, device: DeviceRecord) -> None:
        await self._send(device, ["KEY_VOLUP"])

    async def volume_down(self, device: DeviceRecord) -> None:
        await self._send(device, ["KEY_VOLDOWN"])

    # ------------- Keys -------------

    async def rewind(self, device: DeviceRecord) -> None:
        await self._send(device, ["KEY_REWIND"])

    async def fast_forward(self, device: DeviceRecord) -> None:
        await self._send(device, ["KEY_FF"])

    async def arrow_up(self, device: DeviceRecord) -> None:
        await self._send(device, ["KEY_UP"])

    async def arrow_down(self, device: DeviceRecord) -> None:
        await self._send(device, ["KEY_DOWN"])

    async def arrow_left(self, device: DeviceRecord) -> None:
        await self._send(device, ["KEY_LEFT"])

    async def arrow_right(self, device: DeviceRecord) -> None:
        await self._send(device, ["KEY_RIGHT"])

    async def select(self, device: DeviceRecord) -> None:
        await self._send(device, ["KEY_ENTER"])

    async def back(self, device: DeviceRecord) -> None:
        await self._send(device, ["KEY_RETURN"])

    async def exit(self, device: DeviceRecord) -> None:
        await self._send(device, ["KEY_EXIT"])

    async def info(self, device: DeviceRecord) -> None:
        await self._send(device, ["KEY_INFO"])

    async def open_tv(self, device: DeviceRecord) -> None:
        await self._send(device, ["KEY_TV"])

    async def send_keys(self, device: DeviceRecord, keys: Sequence[str]) -> None:
        await self._send(device, keys)

    async def open_app(self, device: DeviceRecord, app_id: str) -> None:
        logger.debug(f'Launching app {app_id} on "{device.display_name}"')
        await self._guard(device, f"launching app {app_id}", self._rest(device).rest_app_run(app_id))

    # ------------- Internal Methods -------------

    async def _guard(self, device: DeviceRecord, what: str, call: Awaitable[Any]) -> Any:
        try:
            return await call
        except TRANSPORT_ERRORS as e:
            raise RemoteControlError(f'{what} on "{device.display_name}" failed: {str(e) or type(e).__name__}') from e

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
        return self._session

    def _host(self, device: DeviceRecord) -> str:
        if not device.last_known_ip:
            raise RemoteControlError(f'No known IP address for "{device.display_name}"')
        return device.last_known_ip

    def _websocket(
        self,
        device: DeviceRecord,
        token: Optional[str],
        timeout: Optional[float] = None
    ) -> SamsungTVWSAsyncRemote:
        return SamsungTVWSAsyncRemote(
            host=self._host(device),
            port=device.remote_control_port or self.port,
            key_press_delay=device.delay / 1000,
            token=token,
            name=self.name,
            timeout=timeout or self.timeout,
        )

    def _rest(self, device: DeviceRecord) -> SamsungTVAsyncRest:
        return SamsungTVAsyncRest(
            host=self._host(device), port=REST_PORT, session=self._get_session(), timeout=self.timeout
        )

    async def _send(self, device: DeviceRecord, keys: Sequence[str]) -> None:
        """Send keys over one websocket connection, pausing ``device.delay`` ms after each."""
        async def send() -> None:
            remote = self._websocket(device, token=device.token)
            try:
                await remote.open()
                for key in keys:
                    await remote.send_command(SendRemoteKey.click(key))
            finally:
                await remote.close()

        logger.debug(f'Sending {list(keys)} to "{device.display_name}"')
        await self._guard(device, f"sending {list(keys)}", send())

    async def _rendering_control(self, device: DeviceRecord) -> UpnpService:
        location = device.last_known_location
        if not location:
            raise RemoteControlError(f'No UPnP location known for "{device.display_name}"')
        if location not in self._rendering_controls:
            upnp_device = await self._upnp_factory.async_create_device(location)
            service = next(
                (s for s in upnp_device.all_services if RENDERING_CONTROL in s.service_type), None
            )
            if service is None:
                raise RemoteControlError(f'"{device.display_name}" has no RenderingControl service')
            self._rendering_controls[location] = service
        return self._rendering_controls[location]

    async def _call_action(self, device: DeviceRecord, name: str, **arguments: Any) -> Mapping[str, Any]:
        """Call a RenderingControl action and return its output arguments."""
        async def call() -> Mapping[str, Any]:
            service = await self._rendering_control(device)
            action = service.actions.get(name)
            if action is None:
                raise RemoteControlError(f'"{device.display_name}" does not offer {name}')
            return await action.async_call(**arguments)

        return await self._guard(device, name, call())

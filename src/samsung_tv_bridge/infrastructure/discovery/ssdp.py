"""
SSDP discovery of Samsung televisions.

Searches the network with async_upnp_client, groups the answers by host and
reads the UPnP description of every host that looks like a Samsung TV.
"""

import asyncio
import logging
from typing import Dict, List, Mapping, Optional, Set, Tuple
from urllib.parse import urlparse

import aiohttp
from async_upnp_client.aiohttp import AiohttpSessionRequester
from async_upnp_client.client import UpnpDevice
from async_upnp_client.client_factory import UpnpFactory
from async_upnp_client.exceptions import UpnpError
from async_upnp_client.search import SsdpSearchListener

from samsung_tv_bridge.domain.devices.models import DeviceDescriptor
from samsung_tv_bridge.domain.ports import DiscoveryPort
from samsung_tv_bridge.infrastructure.config.models import (
    MEDIA_RENDERER_SEARCH_TARGET, SAMSUNG_REMOTE_SEARCH_TARGET
)

logger = logging.getLogger(__name__)

RENDERING_CONTROL = "RenderingControl"

# REST endpoint of Tizen TVs, used to read the MAC address for Wake-on-LAN
DEVICE_INFO_URL = "http://{host}:8001/api/v2/"


def usn_to_udn(usn: str) -> str:
    """``uuid:abc::urn:...`` -> ``uuid:abc``"""
    return usn.split("::", 1)[0].strip()


def action_names(device: UpnpDevice) -> Set[str]:
    """Names of every action offered by the device and its embedded devices."""
    return {name for service in device.all_services for name in service.actions}


def has_rendering_control(device: UpnpDevice) -> bool:
    return any(RENDERING_CONTROL in service.service_type for service in device.all_services)


class SsdpDiscovery(DiscoveryPort):
    """Finds Samsung televisions with SSDP and UPnP descriptions."""

    def __init__(
        self,
        timeout: float = 5.0,
        search_targets: Optional[List[str]] = None,
        http_timeout: float = 5.0
    ):
        self.timeout = timeout
        self.search_targets = search_targets or [SAMSUNG_REMOTE_SEARCH_TARGET, MEDIA_RENDERER_SEARCH_TARGET]
        self.http_timeout = http_timeout

    async def discover(self) -> List[DeviceDescriptor]:
        """
        Scan the network once.

        Returns:
            One descriptor per Samsung TV that answered

        Raises:
            OSError: If the multicast socket cannot be opened
        """
        logger.info(f"Starting SSDP scan (timeout={self.timeout}s)")
        responses = await self._search()

        hosts: Dict[str, List[Mapping[str, str]]] = {}
        for host, headers in responses:
            hosts.setdefault(host, []).append(headers)

        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.http_timeout)) as session:
            factory = UpnpFactory(
                AiohttpSessionRequester(session, timeout=self.http_timeout), non_strict=True
            )
            results = await asyncio.gather(
                *(self._describe_host(session, factory, host, answers) for host, answers in hosts.items())
            )

        descriptors = [descriptor for descriptor in results if descriptor is not None]
        logger.info(f"SSDP scan complete: found {len(descriptors)} Samsung TVs")
        return descriptors

    async def _search(self) -> List[Tuple[str, Mapping[str, str]]]:
        responses: List[Tuple[str, Mapping[str, str]]] = []

        def device_discovered(headers: Mapping[str, str]) -> None:
            location = headers.get("location")
            host = urlparse(location).hostname if location else None
            if host:
                responses.append((host, headers))

        listeners: List[SsdpSearchListener] = []
        try:
            for search_target in self.search_targets:
                listener = SsdpSearchListener(
                    callback=device_discovered,
                    timeout=max(1, int(self.timeout)),
                    search_target=search_target
                )
                await listener.async_start()
                listeners.append(listener)

            for listener in listeners:
                listener.async_search()
            logger.debug(f"Sent M-SEARCH for {self.search_targets}")

            # Responses arrive through the callback until the MX window closes
            await asyncio.sleep(self.timeout)
        finally:
            for listener in listeners:
                listener.async_stop()
        return responses

    async def _describe_host(
        self,
        session: aiohttp.ClientSession,
        factory: UpnpFactory,
        host: str,
        answers: List[Mapping[str, str]]
    ) -> Optional[DeviceDescriptor]:
        locations: Dict[str, str] = {}
        is_samsung = False
        for headers in answers:
            locations.setdefault(headers["location"], headers.get("usn") or "")
            if headers.get("st") == SAMSUNG_REMOTE_SEARCH_TARGET:
                is_samsung = True

        primary: Optional[Tuple[str, str, UpnpDevice]] = None
        capabilities: Set[str] = set()
        for location, usn in locations.items():
            try:
                device = await factory.async_create_device(location)
            except (UpnpError, aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.debug(f"Could not read UPnP description {location}: {str(e)}")
                continue

            capabilities |= action_names(device)
            if device.manufacturer and "samsung" in device.manufacturer.lower():
                is_samsung = True
            # The renderer is kept since its RenderingControl service drives volume
            if primary is None or (has_rendering_control(device) and not has_rendering_control(primary[2])):
                primary = (location, usn, device)

        if primary is None or not is_samsung:
            return None

        location, usn, device = primary
        udn = device.udn or usn_to_udn(usn)
        if not udn:
            logger.debug(f"Ignoring {host}: no USN in SSDP response or description")
            return None

        descriptor = DeviceDescriptor(
            usn=udn,
            friendly_name=device.friendly_name,
            model_name=device.model_name,
            location=location,
            address=host,
            mac=await self._fetch_mac(session, host),
            capabilities=capabilities,
        )
        logger.debug(
            f'Found Samsung TV "{descriptor.friendly_name}" ({descriptor.model_name}) at {host}, '
            f"capabilities: {sorted(capabilities)}"
        )
        return descriptor

    async def _fetch_mac(self, session: aiohttp.ClientSession, host: str) -> Optional[str]:
        try:
            async with session.get(DEVICE_INFO_URL.format(host=host)) as response:
                response.raise_for_status()
                info = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.debug(f"Could not read device info of {host}: {str(e)}")
            return None
        device = info.get("device") if isinstance(info, dict) else None
        if isinstance(device, dict):
            return device.get("wifiMac")
        return None

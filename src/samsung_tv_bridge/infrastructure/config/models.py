from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from samsung_tv_bridge.domain.devices.models import DeviceOverride

SAMSUNG_REMOTE_SEARCH_TARGET = "urn:samsung.com:device:RemoteControlReceiver:1"
MEDIA_RENDERER_SEARCH_TARGET = "urn:schemas-upnp-org:device:MediaRenderer:1"


class WebServiceConfig(BaseModel):
    """Schema for the HTTP control surface."""
    host: str = "0.0.0.0"
    port: int = 8000


class PersistenceConfig(BaseModel):
    """Configuration for the persistence layer."""
    db_path: str = Field(default="data/state_store.db", description="Path to the SQLite database file")


class DiscoveryConfig(BaseModel):
    """Configuration for SSDP discovery."""
    timeout: float = Field(default=5.0, description="Seconds to collect M-SEARCH responses")
    search_targets: List[str] = Field(
        default_factory=lambda: [SAMSUNG_REMOTE_SEARCH_TARGET, MEDIA_RENDERER_SEARCH_TARGET]
    )


class RefreshConfig(BaseModel):
    """Background refresh timings, in seconds."""
    discovery_interval: float = 300.0
    poll_interval: float = 15.0
    input_revert_delay: float = 3.0


class RemoteConfig(BaseModel):
    """Configuration for the Samsung remote-control connection."""
    name: str = Field(default="SamsungTVBridge", description="Client name shown on the TV when pairing")
    port: int = Field(default=8002, description="Default websocket port, overridden per device")
    timeout: float = 5.0
    pairing_timeout: float = Field(default=30.0, description="Seconds to wait for the user to accept pairing")


class SystemConfig(BaseModel):
    """Schema for system configuration."""
    service_name: str = Field(default="Samsung TV Bridge", description="Name of the service")
    web_service: WebServiceConfig = Field(default_factory=WebServiceConfig)
    log_level: str = "INFO"
    log_file: str = "logs/service.log"
    loggers: Optional[Dict[str, str]] = None
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    refresh: RefreshConfig = Field(default_factory=RefreshConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    devices: List[DeviceOverride] = Field(default_factory=list)

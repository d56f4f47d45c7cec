from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field
from datetime import datetime
from samsung_tv_bridge.__version__ import __version__

from samsung_tv_bridge.domain.devices.models import DeviceRecord, InputConfig


class ServiceInfo(BaseModel):
    """Schema for service information."""
    service: str
    version: str
    status: str


class SystemInfo(BaseModel):
    """Schema for system information."""
    version: str = __version__
    service_name: str
    devices: List[str] = Field(default_factory=list, description="USNs of all known devices")
    controlled_devices: List[str] = Field(
        default_factory=list, description="USNs of devices with a registered control point"
    )


class DeviceInfo(BaseModel):
    """Public view of a device record; the pairing token itself is not exposed."""
    usn: str
    name: Optional[str] = None
    model_name: Optional[str] = None
    last_known_location: Optional[str] = None
    last_known_ip: Optional[str] = None
    mac: Optional[str] = None
    remote_control_port: Optional[int] = None
    delay: int
    ignore: bool
    inputs: List[InputConfig] = Field(default_factory=list)
    disable_upnp_setters: bool
    discovered: bool
    paired: bool
    capabilities: List[str] = Field(default_factory=list)

    @classmethod
    def from_record(cls, record: DeviceRecord) -> "DeviceInfo":
        return cls(
            **record.model_dump(exclude={"token", "capabilities"}),
            paired=bool(record.token),
            capabilities=sorted(record.capabilities or []),
        )


class ReconcileResponse(BaseModel):
    """Schema for a triggered reconciliation pass."""
    status: str
    devices: int
    discovered: int
    timestamp: datetime = Field(default_factory=datetime.now)


class ReloadResponse(BaseModel):
    """Schema for system reload response."""
    status: str
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.now)


class ControlValue(BaseModel):
    """Schema for writing a characteristic."""
    value: Any = Field(..., description="New value of the characteristic")


class ControlResult(BaseModel):
    """Schema for the value of a characteristic."""
    usn: str
    characteristic: str
    value: Any = None


class ControlPointInfo(BaseModel):
    """Schema describing the controls offered for one device."""
    usn: str
    name: str
    volume_control_type: str
    input_sources: List[Dict[str, Any]] = Field(default_factory=list)
    characteristics: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Schema for error responses."""
    detail: str
    error_code: Optional[str] = None

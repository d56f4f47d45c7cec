import logging
from typing import List

from fastapi import APIRouter, HTTPException

from samsung_tv_bridge.domain.devices.models import Characteristic
from samsung_tv_bridge.domain.errors import (
    InvalidControlValueError, PersistenceError, RemoteControlError,
    UnknownDeviceError, UnsupportedControlError
)
from samsung_tv_bridge.presentation.api.schemas import (
    ControlPointInfo, ControlResult, ControlValue, DeviceInfo, ReconcileResponse
)

logger = logging.getLogger(__name__)

# Create router with appropriate prefix and tags
router = APIRouter(
    prefix="/devices",
    tags=["Devices"]
)

# Global references that will be set during initialization
device_registry = None
discovery = None
control_points = None


def initialize(registry, disc, ctrl_points):
    """Initialize global references needed by router endpoints."""
    global device_registry, discovery, control_points
    device_registry = registry
    discovery = disc
    control_points = ctrl_points


def _check_initialized():
    if device_registry is None or control_points is None:
        raise HTTPException(status_code=503, detail="Service not fully initialized")


def _get_control_point(usn: str):
    _check_initialized()
    control_point = control_points.get(usn)
    if control_point is None:
        if device_registry.get(usn) is None:
            raise HTTPException(status_code=404, detail=f"Device {usn} not found")
        raise HTTPException(status_code=404, detail=f"Device {usn} has no registered controls")
    return control_point


def _to_http_error(usn: str, characteristic: Characteristic, e: Exception) -> HTTPException:
    """Map a control error to the HTTP status the caller sees."""
    if isinstance(e, UnknownDeviceError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, UnsupportedControlError):
        return HTTPException(status_code=405, detail=str(e))
    if isinstance(e, InvalidControlValueError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, RemoteControlError):
        logger.warning(f"Remote call {characteristic.value} on {usn} failed: {str(e)}")
        return HTTPException(status_code=502, detail=str(e))
    logger.error(f"Error handling {characteristic.value} on {usn}: {str(e)}")
    return HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@router.get("", response_model=List[DeviceInfo])
async def list_devices():
    """List every known device, including ignored and currently unreachable ones."""
    _check_initialized()
    return [DeviceInfo.from_record(device) for device in device_registry.devices]


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile_devices():
    """Run a discovery and reconciliation pass now."""
    _check_initialized()
    if discovery is None:
        raise HTTPException(status_code=503, detail="Discovery not available")

    try:
        devices = await device_registry.refresh(discovery)
    except PersistenceError as e:
        logger.error(f"Reconciliation failed: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Reconciliation failed: {str(e)}")

    return ReconcileResponse(
        status="ok",
        devices=len(devices),
        discovered=sum(1 for device in devices if device.discovered)
    )


@router.get("/{usn}", response_model=DeviceInfo)
async def get_device(usn: str):
    """Get one device record."""
    _check_initialized()
    device = device_registry.get(usn)
    if device is None:
        raise HTTPException(status_code=404, detail=f"Device {usn} not found")
    return DeviceInfo.from_record(device)


@router.get("/{usn}/controls", response_model=ControlPointInfo)
async def get_controls(usn: str):
    """Describe the characteristics offered for a device and their current values."""
    return ControlPointInfo(**_get_control_point(usn).describe())


@router.get("/{usn}/controls/{characteristic}", response_model=ControlResult)
async def read_control(usn: str, characteristic: Characteristic):
    """Read a characteristic from the device."""
    control_point = _get_control_point(usn)
    try:
        value = await control_point.get(characteristic)
    except Exception as e:
        raise _to_http_error(usn, characteristic, e) from e
    return ControlResult(usn=usn, characteristic=characteristic.value, value=value)


@router.put("/{usn}/controls/{characteristic}", response_model=ControlResult)
async def write_control(usn: str, characteristic: Characteristic, body: ControlValue):
    """Write a characteristic to the device."""
    control_point = _get_control_point(usn)
    try:
        await control_point.set(characteristic, body.value)
    except Exception as e:
        raise _to_http_error(usn, characteristic, e) from e
    return ControlResult(
        usn=usn,
        characteristic=characteristic.value,
        value=control_point.values.get(characteristic, body.value)
    )

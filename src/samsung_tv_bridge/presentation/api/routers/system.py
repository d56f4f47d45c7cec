import logging

from fastapi import APIRouter, HTTPException

from samsung_tv_bridge.__version__ import __version__
from samsung_tv_bridge.domain.errors import ConfigurationError
from samsung_tv_bridge.infrastructure.config.models import SystemConfig
from samsung_tv_bridge.presentation.api.schemas import ReloadResponse, ServiceInfo, SystemInfo

logger = logging.getLogger(__name__)

# Create router with appropriate prefix and tags
router = APIRouter(
    prefix="",
    tags=["System"]
)

# Global references that will be set during initialization
config_manager = None
device_registry = None
control_points = None


def initialize(cfg_manager, registry, ctrl_points=None):
    """Initialize global references needed by router endpoints."""
    global config_manager, device_registry, control_points
    config_manager = cfg_manager
    device_registry = registry
    control_points = ctrl_points


@router.get("/", response_model=ServiceInfo)
async def root():
    """Root endpoint - service information."""
    service = config_manager.get_service_name() if config_manager else "Samsung TV Bridge"
    return ServiceInfo(
        service=service,
        version=__version__,
        status="running"
    )


@router.get("/system", response_model=SystemInfo)
async def get_system_info():
    """Get system information."""
    if not config_manager or not device_registry:
        raise HTTPException(status_code=503, detail="Service not fully initialized")

    return SystemInfo(
        service_name=config_manager.get_service_name(),
        devices=[device.usn for device in device_registry.devices],
        controlled_devices=sorted((control_points or {}).keys())
    )


# Pairing tokens stay out of API responses
TOKEN_EXCLUDE = {"devices": {"__all__": {"token"}}}


@router.get("/config/system", response_model=SystemConfig, response_model_exclude=TOKEN_EXCLUDE)
async def get_system_config():
    """Get system configuration; device tokens are left out."""
    if not config_manager:
        raise HTTPException(status_code=503, detail="Service not fully initialized")

    try:
        return config_manager.get_system_config()
    except Exception as e:
        logger.error(f"Error retrieving system config: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@router.post("/reload", response_model=ReloadResponse)
async def reload_system():
    """
    Reload the system configuration from disk.

    The new device entries are handed to the registry and take effect on the
    next reconciliation pass. Service settings such as the listen address
    still need a restart.
    """
    if not config_manager or not device_registry:
        raise HTTPException(status_code=503, detail="Service not fully initialized")

    logger.info("Reloading system configuration")
    try:
        config_manager.reload_configs()
    except (ConfigurationError, ValueError) as e:
        logger.error(f"Error reloading system config: {str(e)}")
        raise HTTPException(status_code=400, detail=f"Invalid configuration: {str(e)}") from e

    overrides = config_manager.get_device_overrides()
    device_registry.set_overrides(overrides)
    return ReloadResponse(
        status="reloaded",
        message=f"{len(overrides)} device entries apply from the next reconciliation pass"
    )

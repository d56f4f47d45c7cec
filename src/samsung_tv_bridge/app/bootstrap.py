import os
import logging
import asyncio
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from samsung_tv_bridge.domain.devices.control_point import ControlPoint
from samsung_tv_bridge.domain.devices.dispatcher import ControlDispatcher
from samsung_tv_bridge.domain.devices.pairing import PairingCoordinator
from samsung_tv_bridge.domain.devices.registry import DeviceRegistry
from samsung_tv_bridge.domain.devices.scheduler import RefreshScheduler, TaskScheduler
from samsung_tv_bridge.domain.errors import PersistenceError
from samsung_tv_bridge.infrastructure.config.manager import ConfigManager
from samsung_tv_bridge.infrastructure.discovery.ssdp import SsdpDiscovery
from samsung_tv_bridge.infrastructure.persistence.sqlite import SQLiteStateStore
from samsung_tv_bridge.infrastructure.remote.samsung import SamsungRemote

# Import routers
from samsung_tv_bridge.presentation.api.routers import system, devices

from samsung_tv_bridge.__version__ import __version__


# Setup logging
def setup_logging(log_file: str, log_level: str, loggers: Optional[Dict[str, str]] = None):
    """Configure the logging system with daily rotation."""
    try:
        # Create logs directory if it doesn't exist
        log_dir = os.path.dirname(log_file)
        if log_dir:
            Path(log_dir).mkdir(parents=True, exist_ok=True)

        log_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

        file_handler = TimedRotatingFileHandler(
            filename=log_file,
            when='midnight',  # Rotate at midnight
            interval=1,       # One day interval
            backupCount=30,   # Keep 30 days of logs
            encoding='utf-8'
        )
        file_handler.suffix = "%Y%m%d.log"
        file_handler.setFormatter(log_formatter)

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(log_formatter)

        root_logger = logging.getLogger()
        root_logger.handlers = []
        root_logger.addHandler(file_handler)
        root_logger.addHandler(console_handler)

        numeric_level = getattr(logging, log_level.upper(), logging.INFO)
        root_logger.setLevel(numeric_level)

        logger = logging.getLogger(__name__)
        logger.info("Logging system initialized with daily rotation at level %s", log_level)

        # Check for log level override from environment
        override_log_level = os.getenv('OVERRIDE_LOG_LEVEL')
        if override_log_level:
            override_numeric_level = getattr(logging, override_log_level.upper(), None)
            if isinstance(override_numeric_level, int):
                root_logger.setLevel(override_numeric_level)
                logger.info(f"Log level overridden by environment variable: {override_log_level}")
            else:
                logger.warning(f"Invalid log level override '{override_log_level}', ignoring")

        # Apply logger-specific configuration
        for logger_name, logger_level in (loggers or {}).items():
            logging.getLogger(logger_name).setLevel(getattr(logging, logger_level.upper(), logging.INFO))
            logger.info(f"Set logger {logger_name} to level {logger_level}")

    except Exception as e:
        print(f"Error setting up logging: {str(e)}")
        raise


def create_app(config_manager: Optional[ConfigManager] = None) -> FastAPI:
    """Create and configure the FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for FastAPI application."""
        cfg_manager = config_manager or ConfigManager()
        app.title = cfg_manager.get_service_name()

        system_config = cfg_manager.get_system_config()
        setup_logging(
            system_config.log_file or 'logs/service.log',
            system_config.log_level,
            system_config.loggers
        )

        logger = logging.getLogger(__name__)
        logger.info(f"Starting {system_config.service_name} {__version__}")

        state_store = SQLiteStateStore(db_path=system_config.persistence.db_path)
        await state_store.initialize()

        remote = SamsungRemote(
            name=system_config.remote.name,
            port=system_config.remote.port,
            timeout=system_config.remote.timeout,
            pairing_timeout=system_config.remote.pairing_timeout
        )
        discovery = SsdpDiscovery(
            timeout=system_config.discovery.timeout,
            search_targets=system_config.discovery.search_targets
        )
        registry = DeviceRegistry(state_store, cfg_manager.get_device_overrides())
        task_scheduler = TaskScheduler()
        dispatcher = ControlDispatcher(
            registry, remote, task_scheduler, revert_delay=system_config.refresh.input_revert_delay
        )
        refresh_scheduler = RefreshScheduler(
            registry,
            discovery,
            remote,
            task_scheduler,
            coarse_interval=system_config.refresh.discovery_interval,
            poll_interval=system_config.refresh.poll_interval
        )

        try:
            await registry.refresh(discovery)

            pairing = PairingCoordinator(remote)
            for result in await pairing.pair(registry.devices):
                if not result.success:
                    continue
                try:
                    await registry.update_device(result.device)
                except PersistenceError as e:
                    logger.error(f'Could not store pairing token of "{result.device.display_name}": {str(e)}')

            control_points: Dict[str, ControlPoint] = {}
            for device in registry.devices:
                if device.ignore:
                    logger.info(f'Ignoring device "{device.display_name}", usn: "{device.usn}"')
                    continue
                logger.info(f'Found device "{device.display_name}" ({device.model_name}), usn: "{device.usn}"')
                control_points[device.usn] = dispatcher.build_control_point(device.usn)

            refresh_scheduler.start(control_points.values())
        except Exception:
            await remote.close()
            await state_store.close()
            raise

        system.initialize(cfg_manager, registry, control_points)
        devices.initialize(registry, discovery, control_points)
        logger.info(f"Service started with {len(control_points)} controllable devices")

        yield

        # Shutdown
        logger.info("Shutting down...")
        try:
            dispatcher.cancel_pending_reverts()
            await refresh_scheduler.stop()
            await remote.close()
            await state_store.close()
            logger.info("System shutdown complete")
        except asyncio.CancelledError:
            logger.warning("Shutdown sequence interrupted by cancellation - performing emergency cleanup")
            try:
                await asyncio.wait_for(state_store.close(), timeout=0.5)
            except (asyncio.TimeoutError, asyncio.CancelledError) as e:
                logger.warning(f"Emergency state store close failed: {e}")
            raise

    app = FastAPI(
        title="Samsung TV Bridge",
        description="A web service that discovers Samsung TVs and exposes their remote controls",
        version=__version__,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # For local network, allow all origins
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(system.router)
    app.include_router(devices.router)

    return app

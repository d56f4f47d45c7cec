import json
import os
import logging
from typing import List, Optional

from pydantic import ValidationError

from samsung_tv_bridge.domain.devices.models import DeviceOverride
from samsung_tv_bridge.domain.errors import ConfigurationError
from samsung_tv_bridge.infrastructure.config.models import SystemConfig

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = "SAMSUNG_TV_BRIDGE_CONFIG_DIR"


class ConfigManager:
    """Manages configuration for the Samsung TV bridge service."""

    def __init__(self, config_dir: Optional[str] = None):
        self.config_dir = config_dir or os.getenv(CONFIG_DIR_ENV, "config")
        self.system_config_file = os.path.join(self.config_dir, "system.json")
        self.system_config = SystemConfig()

        os.makedirs(self.config_dir, exist_ok=True)

        self._load_system_config()
        self._apply_environment_variables()
        logger.info(f"Loaded {len(self.system_config.devices)} device entries from system config")

    def _load_system_config(self):
        """Load the system configuration from JSON file."""
        try:
            with open(self.system_config_file, 'r') as f:
                config_data = json.load(f)
            self.system_config = SystemConfig(**config_data)
            logger.info("System configuration loaded successfully")
        except FileNotFoundError:
            logger.warning(f"System config file not found at {self.system_config_file}")
            self._save_system_config()
        except json.JSONDecodeError:
            logger.error(f"Invalid JSON in system config file {self.system_config_file}")
            raise
        except ValidationError as e:
            logger.error(f"Invalid system config in {self.system_config_file}: {str(e)}")
            raise ConfigurationError(f"Invalid system config: {str(e)}") from e

        return self.system_config

    def _save_system_config(self):
        """Save the system configuration to JSON file."""
        try:
            with open(self.system_config_file, 'w') as f:
                json.dump(self.system_config.model_dump(mode="json"), f, indent=2)
            logger.info("System configuration saved successfully")
        except Exception as e:
            logger.error(f"Failed to save system config: {str(e)}")
            raise

    def _apply_environment_variables(self):
        """Apply environment variables to configuration."""
        web_service = self.system_config.web_service
        web_service.host = os.getenv('WEB_SERVICE_HOST', web_service.host)
        port = os.getenv('WEB_SERVICE_PORT')
        if port:
            try:
                web_service.port = int(port)
            except ValueError:
                raise ConfigurationError(f"WEB_SERVICE_PORT must be an integer, got '{port}'")

    def get_system_config(self) -> SystemConfig:
        """Get the system configuration."""
        return self.system_config

    def get_service_name(self) -> str:
        return self.system_config.service_name

    def get_device_overrides(self) -> List[DeviceOverride]:
        """Get the per-device configuration entries."""
        return list(self.system_config.devices)

    def reload_configs(self):
        """Reload all configurations from disk."""
        self._load_system_config()
        self._apply_environment_variables()
        logger.info("All configurations reloaded")
        return True

import json
import os

import pytest

from samsung_tv_bridge.domain.errors import ConfigurationError
from samsung_tv_bridge.infrastructure.config.manager import CONFIG_DIR_ENV, ConfigManager
from samsung_tv_bridge.infrastructure.config.models import SAMSUNG_REMOTE_SEARCH_TARGET


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (CONFIG_DIR_ENV, "WEB_SERVICE_HOST", "WEB_SERVICE_PORT"):
        monkeypatch.delenv(name, raising=False)


def write_config(config_dir, data):
    config_dir.mkdir(parents=True, exist_ok=True)
    with open(config_dir / "system.json", "w") as f:
        json.dump(data, f)


class TestConfigManager:
    def test_missing_file_writes_defaults(self, tmp_path):
        config_dir = tmp_path / "config"

        manager = ConfigManager(str(config_dir))

        config = manager.get_system_config()
        assert config.web_service.port == 8000
        assert config.refresh.discovery_interval == 300
        assert config.refresh.poll_interval == 15
        assert config.refresh.input_revert_delay == 3.0
        assert SAMSUNG_REMOTE_SEARCH_TARGET in config.discovery.search_targets
        assert os.path.exists(config_dir / "system.json")

    def test_loads_device_overrides(self, tmp_path):
        write_config(tmp_path, {
            "service_name": "Test Bridge",
            "log_level": "DEBUG",
            "persistence": {"db_path": "data/test.db"},
            "devices": [
                {"usn": "uuid:tv-1", "name": "Living Room", "inputs": [{"name": "PS5", "keys": "HDMI1"}]},
                {"usn": "uuid:tv-2", "ignore": True},
            ],
        })

        manager = ConfigManager(str(tmp_path))

        assert manager.get_service_name() == "Test Bridge"
        overrides = manager.get_device_overrides()
        assert [o.usn for o in overrides] == ["uuid:tv-1", "uuid:tv-2"]
        assert overrides[0].overrides() == {
            "name": "Living Room",
            "inputs": [{"name": "PS5", "keys": "HDMI1"}],
        }
        assert overrides[1].overrides() == {"ignore": True}

    def test_invalid_json_raises(self, tmp_path):
        (tmp_path / "system.json").write_text("{not json")

        with pytest.raises(json.JSONDecodeError):
            ConfigManager(str(tmp_path))

    def test_invalid_config_raises(self, tmp_path):
        write_config(tmp_path, {"devices": [{"name": "no usn"}]})

        with pytest.raises(ConfigurationError):
            ConfigManager(str(tmp_path))

    def test_environment_overrides(self, tmp_path, monkeypatch):
        write_config(tmp_path, {"web_service": {"host": "127.0.0.1", "port": 8000}})
        monkeypatch.setenv("WEB_SERVICE_HOST", "0.0.0.0")
        monkeypatch.setenv("WEB_SERVICE_PORT", "9090")

        config = ConfigManager(str(tmp_path)).get_system_config()

        assert config.web_service.host == "0.0.0.0"
        assert config.web_service.port == 9090

    def test_invalid_port_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("WEB_SERVICE_PORT", "eighty")

        with pytest.raises(ConfigurationError):
            ConfigManager(str(tmp_path))

    def test_config_dir_from_environment(self, tmp_path, monkeypatch):
        write_config(tmp_path / "custom", {"service_name": "From Env"})
        monkeypatch.setenv(CONFIG_DIR_ENV, str(tmp_path / "custom"))

        assert ConfigManager().get_service_name() == "From Env"

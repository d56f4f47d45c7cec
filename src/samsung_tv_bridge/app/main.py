from dotenv import load_dotenv

from samsung_tv_bridge.app.bootstrap import create_app
from samsung_tv_bridge.infrastructure.config.manager import ConfigManager


def main() -> None:
    import uvicorn

    load_dotenv()
    config_manager = ConfigManager()
    web_service = config_manager.get_system_config().web_service
    uvicorn.run(create_app(config_manager), host=web_service.host, port=web_service.port, reload=False)


if __name__ == "__main__":
    main()

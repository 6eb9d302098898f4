"""
Main entry point for TeamPilot.
"""

import uvicorn
import logging
from pathlib import Path

from teampilot.config import load_config, get_env_config
from teampilot.api.main import create_app

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(log_level: str = "INFO") -> int:
    """Configure logging with the specified level."""
    level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL
    }

    numeric_level = level_map.get(log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        force=True  # Force reconfiguration even if logging was already configured
    )

    # Child loggers created later inherit from the package logger
    package_logger = logging.getLogger("teampilot")
    package_logger.setLevel(numeric_level)
    package_logger.propagate = True

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(numeric_level, logging.WARNING))

    return numeric_level


def uvicorn_log_config(log_level: str) -> dict:
    """Uvicorn logging config that shares our format."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": LOG_FORMAT,
            },
        },
        "handlers": {
            "default": {
                "formatter": "default",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {
            "level": log_level.upper(),
            "handlers": ["default"],
        },
    }


logger = logging.getLogger(__name__)


def main():
    """Main application entry point."""
    try:
        env_config = get_env_config()
        config_path = Path(env_config.get_config_path())

        if not config_path.exists():
            logger.error(f"Configuration file not found: {config_path}")
            logger.info(f"Please create a {config_path} file with your configuration")
            logger.info("You can also set TEAMPILOT_CONFIG environment variable to specify a different config file")
            return

        logger.info(f"Loading configuration from {config_path}")
        config = load_config(str(config_path))

        configure_logging(config.logging.level)
        logger.info(f"Logging configured with level: {config.logging.level}")

        app = create_app(config)

        logger.info(f"Starting {config.bot.name} server...")
        uvicorn.run(
            app,
            host=env_config.get("HOST", "0.0.0.0"),
            port=int(env_config.get("PORT", "8000")),
            log_config=uvicorn_log_config(config.logging.level)
        )

    except Exception as e:
        logger.error(f"Failed to start application: {e}")
        raise


if __name__ == "__main__":
    main()

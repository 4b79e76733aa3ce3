import argparse
import asyncio
import sys

from loguru import logger

from common import settings as common_settings
from common.utils.exceptions import ConfigError
from assistant import settings as assistant_settings
from assistant.assistant import Assistant
from assistant.config import load_groups


def configure_logging(level: str, log_file: str | None = None) -> None:
    """Replace loguru's default sink with one at ``level`` and add an optional file sink."""
    logger.remove()
    logger.add(sys.stderr, level=level)
    if log_file:
        logger.add(log_file, level=level, rotation=common_settings.LOG_ROTATION, enqueue=True)


def main():
    """Main entry point for the mining assistant."""
    parser = argparse.ArgumentParser(description="Keep one miner running against the best PoSW allowance.")
    parser.add_argument(
        "--config",
        dest="config",
        default=assistant_settings.CONFIG_PATH,
        help="Path to the JSON configuration (default: %(default)s).",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        default=common_settings.LOG_LEVEL,
        help="Loguru level for console and file output (default: %(default)s).",
    )
    parser.add_argument(
        "--no-banner",
        dest="show_banner",
        action="store_false",
        help="Do not print the configuration summary at startup.",
    )
    parser.add_argument(
        "--health",
        dest="launch_health",
        action="store_true",
        help="Serve the health and metrics endpoints.",
    )
    parser.set_defaults(show_banner=True, launch_health=assistant_settings.LAUNCH_HEALTH)
    args = parser.parse_args()

    configure_logging(args.log_level.upper(), common_settings.LOG_FILE)

    try:
        groups = load_groups(args.config)
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    assistant = Assistant(groups, launch_health=args.launch_health, show_banner=args.show_banner)

    try:
        asyncio.run(assistant.run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()

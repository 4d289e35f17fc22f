"""Run one sync from the command line: ``python -m doccs_sync``."""

import asyncio
import sys

from dotenv import load_dotenv

from doccs_sync.config import load_config
from doccs_sync.core import configure_logging, get_logger
from doccs_sync.core.errors import ConfigurationError
from doccs_sync.runner import run_sync

logger = get_logger(__name__)


def main() -> int:
    """Load configuration, run the sync and return the process exit code."""
    load_dotenv()

    try:
        config = load_config()
    except ConfigurationError as e:
        configure_logging(level="INFO")
        logger.error("sync_configuration_failed", error=str(e))
        return 1

    configure_logging(json_format=config.json_logs, debug=config.debug)

    try:
        asyncio.run(run_sync(config))
    except Exception as e:
        logger.exception("sync_failed", error=str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

import sys
import os
import logging
from pathlib import Path

# Add the project directory to the Python path
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from entry_cleanup.config import load_settings, resolve_connections_file
from entry_cleanup.connections import load_connections
from entry_cleanup.errors import ConfigError, ConnectionsError, CredentialsError
from entry_cleanup.utils.cleanup import cleanup_storage
from entry_cleanup.utils.s3_service import resolve_credentials

logger = logging.getLogger("entry_cleanup")


def main() -> int:
    logging.basicConfig(level=logging.INFO)
    try:
        settings = load_settings()
        logging.getLogger().setLevel(settings.log_level)
        connections = load_connections(resolve_connections_file(settings, Path(__file__).resolve().parent))
        resolve_credentials(settings)
    except (ConfigError, ConnectionsError, CredentialsError) as e:
        logger.critical(str(e))
        return 1

    print("Starting cleanup process...")
    try:
        report = cleanup_storage(settings, connections)
    except ConfigError as e:
        # Raised while building the first client, before any storage call
        logger.critical(str(e))
        return 1
    if report.failures:
        print(f"Cleanup completed with {len(report.failures)} failed sweep(s). Check the logs for details.")
    else:
        print("Cleanup completed successfully!")
    return 0


if __name__ == "__main__":
    sys.exit(main())

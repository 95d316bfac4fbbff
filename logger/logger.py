import logging
import os
import sys

# Configure a single application logger; LOG_LEVEL overrides the default
log_format = '%(asctime)s - %(levelname)s - %(message)s'
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format=log_format,
    handlers=[logging.StreamHandler(sys.stdout)]
)

# Driver heartbeats drown out request logs
logging.getLogger("pymongo").setLevel(logging.WARNING)

# Get a single logger for the entire application
logger = logging.getLogger("app")

# Export only the logger instance
__all__ = ["logger"]

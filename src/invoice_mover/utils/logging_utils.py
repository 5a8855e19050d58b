"""Logging setup shared by the Lambda handlers, the CLI and the admin API."""
import logging
import sys
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# botocore logs every request at DEBUG
NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "s3transfer")


def configure_logging(level: Optional[str] = None) -> None:
    """Install a single stream handler on the root logger.

    Lambda pre-installs a handler on the root logger, so handlers are replaced rather
    than added to keep each line from being written twice.
    """
    if level is None:
        from invoice_mover.settings import get_settings
        level = get_settings().log_level

    numeric_level = getattr(logging, str(level).upper(), logging.INFO)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.basicConfig(level=numeric_level, handlers=[handler], force=True)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

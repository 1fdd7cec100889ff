"""
Streamcast - Centralized Logging Configuration

Provides consistent logging setup across the Streamcast services. The level
can be raised or lowered per device with STREAMCAST_LOG_LEVEL (e.g. DEBUG).
"""

import logging
import os
from typing import Optional, Union

DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_LOG_LEVEL = logging.INFO
LOG_LEVEL_ENV_VAR = 'STREAMCAST_LOG_LEVEL'

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ('urllib3', 'PIL')


def parse_log_level(level: Union[int, str, None], default: int = DEFAULT_LOG_LEVEL) -> int:
    """Turn 'debug' / 'INFO' / 10 into a logging level, falling back to default."""
    if isinstance(level, int):
        return level
    if not level:
        return default
    value = logging.getLevelName(str(level).strip().upper())
    return value if isinstance(value, int) else default


def setup_service_logging(
    service_name: str,
    level: Union[int, str, None] = None,
    log_format: str = DEFAULT_LOG_FORMAT
) -> logging.Logger:
    """
    Setup logging for a Streamcast service.

    Args:
        service_name: Name of the service (used as logger name, e.g., 'streamcast-player')
        level: Logging level; defaults to STREAMCAST_LOG_LEVEL, then INFO
        log_format: Log format string (uses default if not specified)

    Returns:
        Configured logger instance
    """
    resolved = parse_log_level(level if level is not None else os.environ.get(LOG_LEVEL_ENV_VAR))
    logging.basicConfig(level=resolved, format=log_format)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))
    return logging.getLogger(service_name)


def log_service_start(logger: logging.Logger, service_name: str) -> None:
    """Log the standard service startup banner."""
    logger.info("=" * 60)
    logger.info(f"{service_name} Starting")
    logger.info("=" * 60)


def log_service_ready(logger: logging.Logger, service_name: str, status_msg: Optional[str] = None) -> None:
    if status_msg:
        logger.info(f"{service_name} ready - {status_msg}")
    else:
        logger.info(f"{service_name} ready")

"""
Monitoring Infrastructure: Logging with Loguru

Configures the process-wide loguru sink (text for humans, serialized JSON
for log shippers) and hands out component-bound loggers.
"""

import sys
from typing import Optional

from loguru import logger

from config.settings import MonitoringSettings

TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[component]}</cyan> | "
    "<level>{message}</level>"
)


def configure_logging(settings: Optional[MonitoringSettings] = None) -> int:
    """
    Replace the default loguru sink with one honoring the monitoring settings.

    Args:
        settings: Monitoring settings; defaults are used when omitted

    Returns:
        Id of the installed sink (usable with logger.remove)
    """
    settings = settings or MonitoringSettings()

    logger.remove()
    logger.configure(extra={"component": "engine"})

    if settings.log_format == "json":
        return logger.add(sys.stderr, level=settings.log_level, serialize=True)
    return logger.add(sys.stderr, level=settings.log_level, format=TEXT_FORMAT)


def get_logger(component: str):
    """
    Get a loguru logger bound with a component name.

    Args:
        component: Short component name shown in every record

    Returns:
        Bound loguru logger
    """
    return logger.bind(component=component)


__all__ = ["configure_logging", "get_logger"]

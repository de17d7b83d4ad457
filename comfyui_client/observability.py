"""
Logging setup using structlog

The client modules log through the standard ``logging`` module. This helper
renders those records with structlog, either as JSON lines or as readable
console output.
"""

import logging
from typing import Optional, Union

import structlog

PACKAGE_LOGGER = "comfyui_client"

# Handler installed by the last configure_logging() call
_installed_handler: Optional[logging.Handler] = None


def configure_logging(
    level: Union[int, str] = logging.INFO,
    json_output: bool = False,
    handler: Optional[logging.Handler] = None
) -> logging.Logger:
    """
    Attach a structlog-formatted handler to the package logger

    Args:
        level: Log level for the package logger
        json_output: Render JSON lines instead of console output
        handler: Handler to use (defaults to a stderr StreamHandler)

    Returns:
        The configured package logger
    """
    global _installed_handler

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = handler or logging.StreamHandler()
    handler.setFormatter(formatter)

    logger = logging.getLogger(PACKAGE_LOGGER)
    if _installed_handler is not None:
        logger.removeHandler(_installed_handler)
    _installed_handler = handler

    logger.addHandler(handler)
    logger.setLevel(level)
    return logger

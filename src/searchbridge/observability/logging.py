"""Structured logging configuration using structlog.

Library modules log through the standard library (``logging.getLogger``).
``setup_logging`` renders those records with structlog on the ``searchbridge``
logger only, so an application embedding the adapter keeps control of the
root logger.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from searchbridge.config.settings import ObservabilitySettings

PACKAGE_LOGGER = "searchbridge"
_HANDLER_NAME = "searchbridge-structlog"

_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def transport_log_level(level: str) -> int:
    """Map an adapter's ``log`` option to a stdlib level; ``trace`` has no equivalent and maps to DEBUG."""
    return _LEVELS.get(level.lower(), logging.ERROR)


def _renderer(log_format: str) -> structlog.typing.Processor:
    if log_format == "console":
        return structlog.dev.ConsoleRenderer(colors=False)
    return structlog.processors.JSONRenderer()


def setup_logging(settings: ObservabilitySettings | None = None) -> logging.Handler:
    """Render ``searchbridge.*`` log records as JSON or console lines on stderr.

    Calling it again replaces the handler it installed before.  Stdout is
    left to command output.

    Args:
        settings: Observability settings. Uses defaults if None.

    Returns:
        The installed handler.
    """
    log_level = settings.log_level if settings else "info"
    log_format = settings.log_format if settings else "json"

    shared: list[structlog.typing.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                _renderer(log_format),
            ],
        )
    )

    package = logging.getLogger(PACKAGE_LOGGER)
    for existing in [h for h in package.handlers if h.get_name() == _HANDLER_NAME]:
        package.removeHandler(existing)
    package.addHandler(handler)
    package.setLevel(_LEVELS.get(log_level.lower(), logging.INFO))
    return handler

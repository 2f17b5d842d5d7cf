"""structlog configuration scoped to the ``ngrok_tunnel`` logger tree.

Only the package's own stdlib logger receives handlers, so importing the
package never touches handlers an application installed on the root logger.
"""

import logging
import sys

import structlog
from structlog.typing import Processor

PACKAGE_LOGGER = "ngrok_tunnel"

# marks handlers owned by setup_logging so repeat calls replace only those
_OWNED = "_ngrok_tunnel_owned"


def _own(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    setattr(handler, _OWNED, True)
    return handler


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    log_file: str | None = None,
) -> None:
    """Configure structured logging for tunnel events.

    Args:
        level: Level for the package logger (DEBUG, INFO, WARNING, ERROR)
        json_format: Render events as JSON instead of console key/value text
        log_file: Optional file that also receives every package event
    """
    log_level = getattr(logging, level.upper())

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in package_logger.handlers[:]:
        if getattr(handler, _OWNED, False):
            package_logger.removeHandler(handler)
            handler.close()
    package_logger.setLevel(log_level)
    package_logger.propagate = False

    package_logger.addHandler(
        _own(logging.StreamHandler(sys.stdout), log_level, "%(message)s")
    )
    if log_file:
        package_logger.addHandler(
            _own(
                logging.FileHandler(log_file),
                log_level,
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            )
        )

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer()
        if json_format
        else structlog.dev.ConsoleRenderer(colors=False),
    ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger under the package tree with its component bound.

    Args:
        name: Module name (usually __name__); other names are nested under
            the package logger

    Returns:
        structlog logger carrying ``component=<last name segment>``
    """
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return structlog.get_logger(name, component=name.rpartition(".")[2])  # type: ignore[no-any-return]

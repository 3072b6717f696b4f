"""Structured logging module for fork-merge-engine.

Provides JSON-formatted structured logging using structlog.

Patterns applied:
- Singleton _configured flag prevents reconfiguration
- configure_logging() called ONCE at startup
- Underscore-prefix for unused structlog params
- JSON output via JSONRenderer
- Fork ID support via contextvars so every event emitted while a fork
  runs (including from its branches) carries the same fork_id
"""

import contextvars
import sys
from typing import Any, TextIO

import structlog
from structlog.types import EventDict


# =============================================================================
# Singleton Configuration State
# =============================================================================
_configured: bool = False


# =============================================================================
# Fork ID Context
# =============================================================================
_fork_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "fork_id", default=None
)


def set_fork_id(fork_id: str | None) -> contextvars.Token[str | None]:
    """Set fork ID for the current async context.

    Tasks created afterwards (the fork's branches) inherit the value.

    Args:
        fork_id: Identifier of the running fork, or None to clear it.

    Returns:
        Token that can be passed to reset_fork_id().
    """
    return _fork_id_var.set(fork_id)


def reset_fork_id(token: contextvars.Token[str | None]) -> None:
    """Restore the fork ID that was active before set_fork_id()."""
    _fork_id_var.reset(token)


def get_fork_id() -> str | None:
    """Get current fork ID.

    Returns:
        Fork ID if set, None otherwise.
    """
    return _fork_id_var.get()


# =============================================================================
# Custom Processors
# =============================================================================
def add_fork_id(
    _logger: object, _method_name: str, event_dict: EventDict
) -> EventDict:
    """Add fork ID to log event if set.

    Args:
        _logger: Logger instance (unused - required by structlog interface).
        _method_name: Method name (unused).
        event_dict: Event dictionary to process.

    Returns:
        Event dictionary with fork_id added if set.
    """
    fork_id = get_fork_id()
    if fork_id is not None:
        event_dict["fork_id"] = fork_id
    return event_dict


def _level_to_int(level: str) -> int:
    """Convert log level string to integer.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).

    Returns:
        Integer log level for structlog filtering.
    """
    levels = {
        "DEBUG": 10,
        "INFO": 20,
        "WARNING": 30,
        "ERROR": 40,
        "CRITICAL": 50,
    }
    return levels.get(level.upper(), 20)


# =============================================================================
# Singleton Configuration
# =============================================================================
def configure_logging(
    level: str = "INFO",
    stream: TextIO | None = None,
    force: bool = False,
) -> None:
    """Configure structlog ONCE at application startup.

    Subsequent calls are no-ops unless force=True (for testing).

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        stream: Output stream. Defaults to sys.stdout.
        force: Force reconfiguration (for testing only).
    """
    global _configured

    if _configured and not force:
        return

    processors: list[structlog.types.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
        add_fork_id,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(default=repr),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(_level_to_int(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stdout),
        cache_logger_on_first_use=False,
    )

    _configured = True


def reset_logging() -> None:
    """Reset configuration state for test isolation.

    Only use in tests to allow reconfiguration between tests.
    """
    global _configured
    _configured = False


def get_logger(name: str) -> Any:
    """Get configured logger by name.

    Auto-configures with defaults if not already configured.

    Args:
        name: Logger name (typically __name__ of the module).

    Returns:
        Configured structlog BoundLogger instance.
    """
    configure_logging()  # No-op if already configured
    # Lazy proxy: module-level loggers pick up later reconfiguration.
    # "logger" is wrap_logger's own parameter name, so bind logger_name.
    return structlog.get_logger(logger_name=name)

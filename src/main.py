"""Process startup for fork-merge-engine.

Call init() once, before the first fork. It reads Settings, configures
logging, and installs tracing when enabled. Library code never calls it:
an application that embeds the engine owns its own startup.
"""

from src import __version__
from src.core.config import Settings, get_settings
from src.core.logging import configure_logging, get_logger
from src.observability.tracing import setup_tracing


def init(settings: Settings | None = None) -> Settings:
    """Configure logging and tracing from settings.

    Args:
        settings: Settings override; defaults to get_settings().

    Returns:
        The settings that were applied.
    """
    settings = settings or get_settings()

    # Configure logging ONCE
    configure_logging(level=settings.log_level)
    logger = get_logger(__name__)

    if settings.tracing_enabled:
        setup_tracing(
            service_name=settings.service_name,
            otlp_endpoint=settings.otlp_endpoint,
        )

    logger.info(
        "Fork-merge engine initialized",
        service=settings.service_name,
        version=__version__,
        environment=settings.environment,
        tracing_enabled=settings.tracing_enabled,
        default_warmup=settings.default_warmup,
    )
    return settings

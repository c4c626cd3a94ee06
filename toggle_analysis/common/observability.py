import logging
from typing import TYPE_CHECKING

from toggle_analysis.common.config import Settings

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger(__name__)

_LOGFIRE_INITIALIZED = False


def init_logfire(settings: Settings, app: "FastAPI | None" = None) -> bool:
    """Configure Logfire and instrument outgoing analysis API calls.

    Only the first successful call configures Logfire; later calls are no-ops
    that report True. When ``app`` is given the FastAPI routes are traced too.

    Args:
        settings: Application settings containing Logfire configuration
        app: Optional FastAPI application to instrument

    Returns:
        True if Logfire is active, False if disabled or configuration failed

    Negative case:
        Invalid token -> logs error, returns False, does not crash application
    """
    global _LOGFIRE_INITIALIZED

    if _LOGFIRE_INITIALIZED:
        return True

    if not settings.logfire.is_enabled:
        logger.debug("Logfire disabled: no token configured")
        return False

    try:
        import logfire

        logfire.configure(
            token=settings.logfire.token,
            service_name=settings.logfire.service_name,
            environment=settings.logfire.environment,
        )
        logfire.instrument_httpx()
        if app is not None:
            logfire.instrument_fastapi(app)
    except Exception as e:
        logger.error(f"Failed to initialize Logfire: {e}")
        return False

    _LOGFIRE_INITIALIZED = True
    logger.info(
        "Logfire initialized: service=%s, environment=%s, fastapi=%s",
        settings.logfire.service_name,
        settings.logfire.environment,
        app is not None,
    )
    return True

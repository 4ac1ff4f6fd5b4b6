"""
Main entry point for the Expiration Pending HTTP surface.
"""

from .api import app  # noqa: F401

if __name__ == "__main__":
    import uvicorn

    from .config import get_settings
    from .logs import configure_logging

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    uvicorn.run(
        "expiration_jobs.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )

"""
Barbershop backend entry point.

Serves the serverless functions (booking confirmation, error report,
stamp card verification and requests) with uvicorn, or starts the
offline console demo for development.

Usage:
    Functions:    python main.py serve
    Console mode: python main.py console
"""

import logging
import sys

from barbershop.config import settings

logger = logging.getLogger(__name__)


def _run_functions() -> None:
    """Serve the functions app (needs Supabase and Resend credentials)."""
    import uvicorn

    from barbershop.functions.app import create_app

    logger.info(
        "Serving functions on %s:%d", settings.functions.host, settings.functions.port
    )
    uvicorn.run(
        create_app(),
        host=settings.functions.host,
        port=settings.functions.port,
        log_level=settings.log_level.lower(),
    )


def _run_console_mode() -> None:
    """Start the offline console demo (no API keys required)."""
    import asyncio

    from console_demo import ConsoleSession

    asyncio.run(ConsoleSession().run())


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "console":
        _run_console_mode()
    else:
        _run_functions()

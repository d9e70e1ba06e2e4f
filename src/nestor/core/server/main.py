"""Nestor server entry point (``nestor-server`` or ``python -m nestor.core.server.main``).

Configures logging from ``NESTOR_LOG_LEVEL``, refuses non-loopback binds
unless explicitly allowed, and serves the insight and check-in tools over
Streamable HTTP.
"""

from __future__ import annotations

import logging
from ipaddress import ip_address

from nestor.core.config.settings import get_settings
from nestor.core.server.app import create_app


def _is_loopback_host(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def run() -> None:
    """Start the Nestor MCP server with Streamable HTTP transport."""
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.nestor_log_level.upper(), logging.INFO))

    logger = logging.getLogger(__name__)
    if not settings.nestor_allow_insecure_bind and not _is_loopback_host(settings.nestor_host):
        raise RuntimeError(
            "Refusing to bind Nestor server to a non-loopback host without an auth layer. "
            "Set NESTOR_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )
    logger.info(
        "Starting Nestor health insights server on %s:%d (time_frame=%s, recommendations=%s, storage=%s)",
        settings.nestor_host,
        settings.nestor_port,
        settings.insights_time_frame,
        settings.recommendation_policy,
        "encrypted sqlite" if settings.encryption_key else "disabled",
    )

    mcp = create_app(settings)
    mcp.run(
        transport="streamable-http",
        host=settings.nestor_host,
        port=settings.nestor_port,
    )


if __name__ == "__main__":
    run()

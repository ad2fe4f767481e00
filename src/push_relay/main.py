"""Application entry point for the push relay server."""

from __future__ import annotations

import os

import uvicorn

from push_relay.config.settings import AppConfig


def main() -> None:
    """Start the push relay server."""
    config = AppConfig()
    log_level = "debug" if config.debug else config.server.log_level
    reload = os.getenv("PUSHRELAY_RELOAD", "false").lower() in ("1", "true", "yes")
    uvicorn.run(
        "push_relay.api.app:create_app",
        factory=True,
        host=config.server.host,
        port=config.server.port,
        reload=reload,
        log_level=log_level,
    )


if __name__ == "__main__":
    main()

"""
Entry point for the anchoring server.
"""

from __future__ import annotations

import uvicorn

from didanchor.common.config import Config

from .core import AnchorServer


def start_server(config: Config | None = None) -> None:
    """Start the anchoring server."""
    if config is None:
        config = Config()
    server = AnchorServer(config=config)
    server.initialize()
    server.logger.info(
        "Server starting on http://%s:%s", config.SERVER_HOST, config.SERVER_PORT
    )
    uvicorn.run(server.app, host=config.SERVER_HOST, port=config.SERVER_PORT)

"""
Server - Development runner for Harrier applications (uvicorn).
"""

from __future__ import annotations

import logging
from typing import Any


logger = logging.getLogger("harrier.server")


def run(
    app: Any,
    host: str = "127.0.0.1",
    port: int = 8000,
    reload: bool = False,
    log_level: str = "info",
) -> None:
    """
    Run an ASGI application under uvicorn.

    Args:
        app: ASGI application (or "module:attr" import string when reloading)
        host: Host to bind to
        port: Port to bind to
        reload: Enable auto-reload
        log_level: Logging level
    """
    import uvicorn

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    logger.info(f"Starting uvicorn server on {host}:{port}")
    uvicorn.run(
        app,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


__all__ = ["run"]

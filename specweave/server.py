"""
Serving helpers - logging setup and the uvicorn runner.
"""

import logging
from typing import Any, Optional

import uvicorn

from .config import ServerConfig

logger = logging.getLogger("specweave.server")

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: str = "info") -> None:
    """Set up root logging for command-line use."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )


def serve(app: Any, config: Optional[ServerConfig] = None) -> None:
    """
    Run an ASGI app (usually a Router) with uvicorn.

    Args:
        app: ASGI application, or an import string when reloading
        config: Host, port, log level and reload settings
    """
    config = config or ServerConfig()
    config.validate()
    configure_logging(config.log_level)

    logger.info(f"Starting uvicorn server on {config.host}:{config.port}")
    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        reload=config.reload,
        log_level=config.log_level.lower(),
    )

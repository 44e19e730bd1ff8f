"""
Server entry point
"""

from typing import Optional

import uvicorn

from . import create_app
from ..config import get_config
from ..logging_config import setup_logging


def run_server(host: Optional[str] = None, port: Optional[int] = None):
    """Run the FastAPI server with configured logging"""
    config = get_config()
    setup_logging(
        level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file
    )
    uvicorn.run(
        create_app(),
        host=host or config.api_host,
        port=port or config.api_port,
        log_level=config.log_level.lower()
    )

#!/usr/bin/env python3
"""
SecureBank Entry Point

Starts the FastAPI server with settings taken from SECUREBANK_* environment
variables (or a .env file).
"""

import sys

import uvicorn

from securebank.api import create_app
from securebank.config import get_config
from securebank.encryption import create_encryption_provider
from securebank.errors import ConfigurationError
from securebank.logging_config import setup_logging


def run_server() -> None:
    """Run the FastAPI server"""
    settings = get_config()
    logger = setup_logging(
        level=settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
    )
    # fail fast on a placeholder secret or a missing or malformed key
    settings.check_jwt_secret()
    create_encryption_provider(settings.encryption_key)
    logger.info("Starting SecureBank on %s:%d", settings.api_host, settings.api_port)
    uvicorn.run(
        create_app(settings),
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    try:
        run_server()
    except KeyboardInterrupt:
        print("\nShutting down SecureBank...")
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        sys.exit(1)

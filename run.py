#!/usr/bin/env python3
"""
Currency Baskets Entry Point

Starts the FastAPI server with the ledgers and aggregation engine.
"""

import sys

import uvicorn

from currency_baskets.api import create_app
from currency_baskets.config import get_config
from currency_baskets.logging_config import setup_logging


if __name__ == "__main__":
    config = get_config()
    logger = setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)
    logger.info(f"Starting Currency Baskets API on {config.api_host}:{config.api_port}")
    
    try:
        uvicorn.run(create_app(), host=config.api_host, port=config.api_port)
    except KeyboardInterrupt:
        logger.info("Shutting down Currency Baskets API")
    except Exception as e:
        logger.error(f"Error starting server: {e}")
        sys.exit(1)
